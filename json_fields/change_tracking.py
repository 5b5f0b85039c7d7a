"""
Change detection for JSON-backed attributes.

SQLAlchemy records a change when an attribute is assigned, not when the object
it holds is mutated in place. For JSON-backed attributes this module keeps a
snapshot of each value, taken when the instance is loaded or refreshed and
after every flush, and compares it with the live value in ``detect_changes``.
Differences are reported to SQLAlchemy with ``flag_modified`` so the next
flush writes them.

Sessions created from ``JsonTrackingSession`` (the class used by the session
factories in ``json_fields.database``) run ``detect_changes`` once before every
flush and commit. Any other session, sessionmaker or ``Session`` subclass can opt in with
``install_change_tracking``.
"""

from __future__ import annotations

from typing import Any, Dict, Type, Union

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstanceState, Mapper, Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified

from json_fields.converters import JsonValueComparer
from json_fields.core.logging_config import get_logger

logger = get_logger(__name__)

JSON_FIELDS_INFO_KEY = "json_fields"
SNAPSHOT_INFO_KEY = "json_fields.snapshots"
DETECTED_INFO_KEY = "json_fields.detected"

SessionTarget = Union[Session, Type[Session], sessionmaker, AsyncSession]


def json_comparers(mapper: Mapper[Any]) -> Dict[str, JsonValueComparer]:
    """JSON-backed attributes of a mapped class and their comparers."""
    return mapper.class_manager.info.get(JSON_FIELDS_INFO_KEY, {})


def take_snapshot(state: InstanceState[Any]) -> None:
    comparers = json_comparers(state.mapper)
    if not comparers:
        return
    snapshots = state.info.setdefault(SNAPSHOT_INFO_KEY, {})
    for key, comparer in comparers.items():
        if key in state.dict:
            snapshots[key] = comparer.snapshot(state.dict[key])


def _on_load(target: Any, context: Any) -> None:
    take_snapshot(inspect(target))


def _on_refresh(target: Any, context: Any, attrs: Any) -> None:
    take_snapshot(inspect(target))


def register_entity_type(cls: type) -> None:
    """Snapshot JSON-backed attributes of ``cls`` instances on load and refresh."""
    if not event.contains(cls, "load", _on_load):
        event.listen(cls, "load", _on_load)
        event.listen(cls, "refresh", _on_refresh)


def _sync_session(session: Union[Session, AsyncSession]) -> Session:
    if isinstance(session, AsyncSession):
        return session.sync_session
    return session


def detect_changes(session: Union[Session, AsyncSession]) -> int:
    """Flag JSON-backed attributes whose value was mutated in place.

    Args:
        session: Session whose identity map is scanned.

    Returns:
        Number of attributes flagged as modified.
    """
    session = _sync_session(session)
    flagged = 0
    for state in list(session.identity_map.all_states()):
        comparers = json_comparers(state.mapper)
        snapshots = state.info.get(SNAPSHOT_INFO_KEY)
        if not comparers or snapshots is None:
            continue
        instance = state.obj()
        if instance is None:
            continue
        for key, comparer in comparers.items():
            if key not in state.dict or key not in snapshots:
                continue
            if not comparer.equals(snapshots[key], state.dict[key]):
                flag_modified(instance, key)
                flagged += 1
                logger.debug(f"Detected in-place change of {state.class_.__name__}.{key}")
    return flagged


def _detect_once(session: Session) -> None:
    """Run ``detect_changes`` unless it already ran for the pending flush or commit."""
    if session.info.get(DETECTED_INFO_KEY):
        return
    detect_changes(session)
    session.info[DETECTED_INFO_KEY] = True


def _clear_detected(session: Session, *args: Any) -> None:
    session.info.pop(DETECTED_INFO_KEY, None)


def _before_commit(session: Session) -> None:
    _detect_once(session)


def _before_flush(session: Session, flush_context: Any, instances: Any) -> None:
    _detect_once(session)


def _after_flush_postexec(session: Session, flush_context: Any) -> None:
    _clear_detected(session)
    for state in session.identity_map.all_states():
        take_snapshot(state)


def _listen(target: Any) -> None:
    event.listen(target, "before_commit", _before_commit)
    event.listen(target, "before_flush", _before_flush)
    event.listen(target, "after_flush_postexec", _after_flush_postexec)
    event.listen(target, "after_commit", _clear_detected)
    event.listen(target, "after_soft_rollback", _clear_detected)


def _is_installed(target: Any) -> bool:
    """True when ``target`` or any ``Session`` class it derives from already has the listeners."""
    if event.contains(target, "before_flush", _before_flush):
        return True
    if isinstance(target, sessionmaker):
        session_class = target.class_
    elif isinstance(target, type):
        session_class = target
    else:
        session_class = type(target)
    return any(
        event.contains(klass, "before_flush", _before_flush)
        for klass in session_class.__mro__
        if isinstance(klass, type) and issubclass(klass, Session)
    )


def install_change_tracking(target: SessionTarget) -> SessionTarget:
    """Run ``detect_changes`` before each commit and flush of ``target``.

    A flush only runs when the session already holds pending changes, so an
    explicit ``session.flush()`` after nothing but in-place mutations still needs
    a ``detect_changes`` call first. ``JsonTrackingSession`` does that itself.

    Targets that already track changes, including sessions and sessionmakers of
    a ``JsonTrackingSession`` class, are left as they are.

    Args:
        target: A ``Session`` subclass, session, sessionmaker or ``AsyncSession``.

    Returns:
        ``target``, for chaining.
    """
    listen_on = target.sync_session if isinstance(target, AsyncSession) else target
    if not _is_installed(listen_on):
        _listen(listen_on)
    return target


class JsonTrackingSession(Session):
    """Session that detects in-place changes of JSON-backed attributes before flushing."""

    def flush(self, objects: Any = None) -> None:
        if not self._flushing:
            _detect_once(self)
        try:
            super().flush(objects)
        finally:
            if not self._flushing:
                _clear_detected(self)


_listen(JsonTrackingSession)
