"""
Marker annotations for entity members.

Markers are attached to a member with ``typing.Annotated``::

    class Customer:
        id: int
        office_not_mapped: Annotated[Optional[Office], NotMapped]
        tags: Annotated[list[str], JsonField]

Both the marker class and an instance of it are accepted.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class NotMapped:
    """Exclude a member from the model, including the JSON convention scan."""

    def __repr__(self) -> str:
        return "NotMapped"


class JsonField:
    """Force a member to be stored as a JSON column.

    Args:
        model_type: Type used for (de)serialization when it differs from the
            annotated type, e.g. a narrower pydantic model.
    """

    def __init__(self, model_type: Optional[type] = None) -> None:
        self.model_type = model_type

    def __repr__(self) -> str:
        return f"JsonField(model_type={self.model_type!r})"


def _matches(marker: Any, marker_type: type) -> bool:
    return marker is marker_type or isinstance(marker, marker_type)


def is_not_mapped(markers: Iterable[Any]) -> bool:
    return any(_matches(m, NotMapped) for m in markers)


def find_json_field(markers: Iterable[Any]) -> Optional[JsonField]:
    """Return the ``JsonField`` marker among ``markers``, instantiating a bare class marker."""
    for marker in markers:
        if marker is JsonField:
            return JsonField()
        if isinstance(marker, JsonField):
            return marker
    return None
