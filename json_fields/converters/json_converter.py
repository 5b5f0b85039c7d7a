"""
JSON value converter.

``JsonValueConverter`` is the column type attached to complex properties. It
serializes a Python value to JSON on the way into the database and validates
it back into ``model_type`` on the way out, delegating both directions to a
pydantic ``TypeAdapter``. Anything pydantic can build a schema for works:
pydantic models, dataclasses, TypedDicts, and collections of those.

On PostgreSQL the column is ``JSONB`` unless ``use_jsonb`` is off; every other
dialect gets the generic ``JSON`` type.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import TypeAdapter
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

from json_fields.core.config import get_settings


class JsonValueConverter(TypeDecorator):
    """Store ``model_type`` values as a JSON column.

    Python ``None`` is stored as SQL ``NULL``, not as the JSON literal ``null``.

    Args:
        model_type: Type values are validated into when read back.
        exclude_none: Drop None-valued fields when serializing; defaults to the
            ``JSON_FIELDS_EXCLUDE_NONE`` setting.
        use_jsonb: Use ``JSONB`` on PostgreSQL; defaults to the
            ``JSON_FIELDS_USE_JSONB`` setting.
    """

    impl = JSON
    cache_ok = True

    def __init__(
        self,
        model_type: Any,
        exclude_none: Optional[bool] = None,
        use_jsonb: Optional[bool] = None,
    ) -> None:
        super().__init__(none_as_null=True)
        serializer = get_settings().serializer
        self.model_type = model_type
        self.exclude_none = serializer.exclude_none if exclude_none is None else exclude_none
        self.use_jsonb = serializer.use_jsonb if use_jsonb is None else use_jsonb
        self._adapter: TypeAdapter[Any] = TypeAdapter(model_type)

    @property
    def python_type(self) -> Any:
        return self.model_type if isinstance(self.model_type, type) else object

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql" and self.use_jsonb:
            return dialect.type_descriptor(JSONB(none_as_null=True))
        return dialect.type_descriptor(JSON(none_as_null=True))

    def convert_to_provider(self, value: Any) -> Any:
        """Python value -> JSON-compatible structure."""
        return self._adapter.dump_python(value, mode="json", exclude_none=self.exclude_none)

    def convert_from_provider(self, value: Any) -> Any:
        """JSON-compatible structure -> Python value.

        The column has already decoded the JSON document, so a ``str`` here is a
        JSON string value (an ISO datetime, a UUID, an enum value) and never
        JSON text. Use ``from_json`` for raw JSON text.
        """
        return self._adapter.validate_python(value)

    def to_json(self, value: Any) -> bytes:
        return self._adapter.dump_json(value, exclude_none=self.exclude_none)

    def from_json(self, data: bytes) -> Any:
        return self._adapter.validate_json(data)

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self.convert_to_provider(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self.convert_from_provider(value)
