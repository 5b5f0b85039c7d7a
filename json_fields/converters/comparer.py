"""
Snapshot comparison for JSON-backed values.

SQLAlchemy only records an attribute change when the attribute is assigned.
Mutating a nested object in place (``customer.address.street = "..."``) is
invisible to it, so change tracking keeps a detached snapshot of every
JSON-backed value and compares it with the live value before each flush.
"""

from __future__ import annotations

from typing import Any

from json_fields.converters.json_converter import JsonValueConverter


def has_custom_equality(value: Any) -> bool:
    """True when the value's class defines its own ``__eq__``."""
    return type(value).__eq__ is not object.__eq__


class JsonValueComparer:
    """Compare and snapshot values of a ``JsonValueConverter`` column."""

    def __init__(self, converter: JsonValueConverter) -> None:
        self.converter = converter

    @property
    def model_type(self) -> Any:
        return self.converter.model_type

    def snapshot(self, value: Any) -> Any:
        """Deep copy ``value`` through a JSON round-trip."""
        if value is None:
            return None
        return self.converter.from_json(self.converter.to_json(value))

    def equals(self, left: Any, right: Any) -> bool:
        if left is None or right is None:
            return left is right
        if type(left) is type(right) and has_custom_equality(left):
            return bool(left == right)
        return self.converter.to_json(left) == self.converter.to_json(right)

    def hash(self, value: Any) -> int:
        if value is None:
            return 0
        return hash(self.converter.to_json(value))

    def __repr__(self) -> str:
        return f"JsonValueComparer(model_type={self.model_type!r})"
