"""Value converters and comparers for JSON-backed columns."""

from json_fields.converters.comparer import JsonValueComparer, has_custom_equality
from json_fields.converters.json_converter import JsonValueConverter

__all__ = ["JsonValueComparer", "JsonValueConverter", "has_custom_equality"]
