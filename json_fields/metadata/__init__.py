"""
Entity metadata: the in-memory model, its builder and discovery conventions.
"""

from json_fields.metadata.annotations import JsonField, NotMapped
from json_fields.metadata.builder import EntityTypeBuilder, ModelBuilder, PropertyBuilder
from json_fields.metadata.model import (
    ConfigurationSource,
    EntityType,
    Model,
    Navigation,
    Property,
)

__all__ = [
    "ConfigurationSource",
    "EntityType",
    "EntityTypeBuilder",
    "JsonField",
    "Model",
    "ModelBuilder",
    "Navigation",
    "NotMapped",
    "Property",
    "PropertyBuilder",
]
