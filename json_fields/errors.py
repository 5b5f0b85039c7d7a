"""Error types for the json_fields package.

Defines a small hierarchy of exceptions raised by the model builder when it is
misused. Errors raised by SQLAlchemy or by the pydantic serializer are never
wrapped and surface unchanged.
"""

from __future__ import annotations


class JsonFieldsError(Exception):
    """Base error for all json_fields exceptions."""


class ModelFinalizedError(JsonFieldsError):
    """Raised when a finalized model is configured again."""

    def __init__(self) -> None:
        super().__init__("The model has been finalized and can no longer be changed")


class MissingKeyError(JsonFieldsError):
    """Raised at finalization for an entity type without a primary key."""

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Entity type '{type_name}' has no key; declare an 'id' member or call has_key()")


class UnknownMemberError(JsonFieldsError):
    """Raised when a property is configured by name but its type cannot be found."""

    def __init__(self, type_name: str, member: str) -> None:
        super().__init__(
            f"'{type_name}' declares no member '{member}'; pass type_ to configure it as a shadow property"
        )


class AmbiguousTypeError(JsonFieldsError):
    """Raised when a property type has no column type and no JSON conversion."""

    def __init__(self, type_name: str, member: str, python_type: object) -> None:
        super().__init__(f"Cannot map '{type_name}.{member}' of type {python_type!r} to a column")


class MissingBackingFieldError(JsonFieldsError):
    """Raised when a Python ``property`` is mapped without a field to store its value."""

    def __init__(self, type_name: str, member: str) -> None:
        super().__init__(f"'{type_name}.{member}' is a property; configure its backing field with has_field()")
