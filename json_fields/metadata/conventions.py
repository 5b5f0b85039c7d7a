"""
Type classification and member discovery conventions.

These helpers answer the questions the model builder and the JSON convention
scan ask about a Python class:

- which members does the class declare (annotations and settable properties)?
- is a member type a scalar, a complex object or an entity reference?
- which member is the key?
- which SQLAlchemy column type stores a scalar?
"""

from __future__ import annotations

import enum
import inspect
import re
import types
import typing
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, ClassVar, Dict, Optional, Tuple

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    Interval,
    LargeBinary,
    Numeric,
    String,
    Time,
    Uuid,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeEngine

SCALAR_COLUMN_TYPES: Dict[type, type[TypeEngine]] = {
    bool: Boolean,
    int: Integer,
    float: Float,
    str: String,
    bytes: LargeBinary,
    bytearray: LargeBinary,
    Decimal: Numeric,
    datetime: DateTime,
    date: Date,
    time: Time,
    timedelta: Interval,
    uuid.UUID: Uuid,
}

COLLECTION_ORIGINS = (list, set, frozenset, tuple)

_UNION_TYPES: Tuple[Any, ...] = (typing.Union, types.UnionType)


@dataclass(frozen=True)
class MemberInfo:
    """A member declared on a class."""

    name: str
    annotation: Any
    python_type: Any
    nullable: bool
    markers: Tuple[Any, ...] = ()
    is_property: bool = False
    has_setter: bool = True


@dataclass(frozen=True)
class UnwrappedType:
    python_type: Any
    nullable: bool
    markers: Tuple[Any, ...] = field(default_factory=tuple)


def unwrap(annotation: Any) -> UnwrappedType:
    """Strip ``Annotated`` and ``Optional`` from an annotation.

    ``Annotated`` metadata is collected as markers; a union with ``None``
    reduces to its other member and marks the type nullable. Unions of
    several non-None members are kept as they are.
    """
    markers: Tuple[Any, ...] = ()
    nullable = False
    current = annotation
    while True:
        origin = typing.get_origin(current)
        if origin is typing.Annotated:
            markers += tuple(current.__metadata__)
            current = current.__origin__
            continue
        if origin in _UNION_TYPES:
            args = typing.get_args(current)
            non_none = tuple(a for a in args if a is not type(None))
            if len(non_none) < len(args):
                nullable = True
            if len(non_none) == 1:
                current = non_none[0]
                continue
            current = typing.Union[non_none] if len(non_none) > 1 else current
        break
    return UnwrappedType(current, nullable, markers)


def is_plain_class(python_type: Any) -> bool:
    return inspect.isclass(python_type) and typing.get_origin(python_type) is None


def is_scalar(python_type: Any) -> bool:
    """Scalars map to a plain column: builtins, temporal types, UUID, Decimal and enums."""
    if not is_plain_class(python_type):
        return False
    if issubclass(python_type, enum.Enum):
        return True
    return any(issubclass(python_type, scalar) for scalar in SCALAR_COLUMN_TYPES)


def is_untyped(python_type: Any) -> bool:
    return python_type is Any or python_type is object


def collection_element(python_type: Any) -> Optional[Any]:
    """Element type of ``list[X]``/``set[X]``/``tuple[X, ...]``, or None."""
    origin = typing.get_origin(python_type)
    if origin not in COLLECTION_ORIGINS:
        return None
    args = [a for a in typing.get_args(python_type) if a is not Ellipsis]
    if not args:
        return None
    return unwrap(args[0]).python_type


def column_type_for(python_type: Any) -> Optional[TypeEngine]:
    """SQLAlchemy column type for a scalar, or None when there is none."""
    if not is_plain_class(python_type):
        return None
    if issubclass(python_type, enum.Enum):
        return SAEnum(python_type)
    for scalar in SCALAR_COLUMN_TYPES:
        if issubclass(python_type, scalar):
            return SCALAR_COLUMN_TYPES[scalar]()
    return None


def snake_case(name: str) -> str:
    """``CustomerWithPlainField`` -> ``customer_with_plain_field``."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])|(?<=[A-Z])([A-Z])(?=[a-z])", r"_\1\2", name).lower()


def _type_hints(obj: Any) -> Dict[str, Any]:
    return typing.get_type_hints(obj, include_extras=True)


def _is_class_var(annotation: Any) -> bool:
    return annotation is ClassVar or typing.get_origin(annotation) is ClassVar


def _member_from_annotation(name: str, annotation: Any, **kwargs: Any) -> MemberInfo:
    unwrapped = unwrap(annotation)
    return MemberInfo(
        name=name,
        annotation=annotation,
        python_type=unwrapped.python_type,
        nullable=unwrapped.nullable,
        markers=unwrapped.markers,
        **kwargs,
    )


def _properties(cls: type) -> Dict[str, property]:
    found: Dict[str, property] = {}
    for klass in reversed(inspect.getmro(cls)):
        for name, value in vars(klass).items():
            if isinstance(value, property):
                found[name] = value
    return found


def find_member(cls: type, name: str) -> Optional[MemberInfo]:
    """Look a member up by name, private members and getter-only properties included."""
    prop = _properties(cls).get(name)
    if prop is not None:
        annotation = _type_hints(prop.fget).get("return") if prop.fget is not None else None
        if annotation is None:
            return None
        return _member_from_annotation(name, annotation, is_property=True, has_setter=prop.fset is not None)
    hints = _type_hints(cls)
    if name in hints and not _is_class_var(hints[name]):
        return _member_from_annotation(name, hints[name])
    return None


def declared_members(cls: type) -> Dict[str, MemberInfo]:
    """Members that are mapped by convention, in declaration order.

    Public class annotations across the MRO, followed by public properties that
    have both a setter and a return annotation.
    """
    members: Dict[str, MemberInfo] = {}
    for name, annotation in _type_hints(cls).items():
        if name.startswith("_") or _is_class_var(annotation):
            continue
        members[name] = _member_from_annotation(name, annotation)
    for name, prop in _properties(cls).items():
        if name.startswith("_") or name in members or prop.fset is None or prop.fget is None:
            continue
        annotation = _type_hints(prop.fget).get("return")
        if annotation is None:
            continue
        members[name] = _member_from_annotation(name, annotation, is_property=True)
    return members


def find_key_name(cls: type, members: Optional[Dict[str, MemberInfo]] = None) -> Optional[str]:
    """``id``, else ``<snake_case_class_name>_id``, when such a member exists."""
    members = members if members is not None else declared_members(cls)
    for candidate in ("id", f"{snake_case(cls.__name__)}_id"):
        member = members.get(candidate)
        if member is not None and is_scalar(member.python_type):
            return candidate
    return None


def looks_like_entity(python_type: Any) -> bool:
    """A class with a discoverable key is treated as a navigation target."""
    if not is_plain_class(python_type) or is_scalar(python_type):
        return False
    if python_type.__module__ == "builtins" or python_type.__module__.startswith("typing"):
        return False
    try:
        return find_key_name(python_type) is not None
    except (NameError, TypeError):
        return False


def find_backing_field(cls: type, name: str) -> Optional[str]:
    """``_<name>`` when the class annotates such a field."""
    candidate = f"_{name}"
    hints = _type_hints(cls)
    if candidate in hints and not _is_class_var(hints[candidate]):
        return candidate
    return None
