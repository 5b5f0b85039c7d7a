"""json_fields.

Store complex-typed entity members as JSON columns with SQLAlchemy.

Overview
--------

SQLAlchemy maps scalar attributes to columns and entity references to
relationships. Attributes holding any other object (an address dataclass, a
pydantic settings model, a list of tags) have no column type. This package
detects such members and stores them as serialized JSON instead.

- ``json_fields.metadata``: ``ModelBuilder`` collects entity types over
  SQLAlchemy imperative mapping, discovers members, keys and navigations by
  convention, and maps everything in ``finalize()``.
- ``json_fields.extensions``: ``add_json_fields``, the convention scan that
  attaches a ``JsonValueConverter`` to every complex member.
- ``json_fields.converters``: the JSON column type and the snapshot comparer.
- ``json_fields.change_tracking``: flags JSON-backed attributes that were
  mutated in place so the next flush writes them.
- ``json_fields.database``: engine and session factory helpers.

Typical workflow
----------------

1. ``builder = ModelBuilder()`` and ``builder.entity(Customer)`` for each entity.
2. Opt members out with ``.ignore(...)`` or the ``NotMapped`` marker.
3. ``builder.add_json_fields()`` (pass ``skip_conventional_entities=False``
   to scan entity types discovered only through navigations as well).
4. ``builder.finalize()`` and ``builder.metadata.create_all(engine)``.
5. Work with sessions from ``json_fields.database.create_sessionmaker``.
"""

from json_fields.change_tracking import JsonTrackingSession, detect_changes, install_change_tracking
from json_fields.converters import JsonValueComparer, JsonValueConverter
from json_fields.extensions import add_json_fields
from json_fields.metadata import (
    ConfigurationSource,
    EntityType,
    JsonField,
    Model,
    ModelBuilder,
    NotMapped,
    Property,
)

__all__ = [
    "ConfigurationSource",
    "EntityType",
    "JsonField",
    "JsonTrackingSession",
    "JsonValueComparer",
    "JsonValueConverter",
    "Model",
    "ModelBuilder",
    "NotMapped",
    "Property",
    "add_json_fields",
    "detect_changes",
    "install_change_tracking",
]
