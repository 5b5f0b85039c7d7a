"""
The JSON field convention.

``add_json_fields`` walks the model collected by a ``ModelBuilder`` and
configures every complex-typed member to be stored as a serialized JSON
column instead of being mapped as a relational navigation.

A member is complex when its type is neither a scalar (see
``json_fields.metadata.conventions.is_scalar``) nor an entity type registered
in the model, nor a collection of such entity types. Members marked with
``JsonField`` are converted whatever their type. Members ignored through
``EntityTypeBuilder.ignore`` or marked ``NotMapped`` are left alone, and so
are keys and properties with an explicitly configured conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional, Set, Tuple

from json_fields.converters import JsonValueComparer, JsonValueConverter
from json_fields.core.config import get_settings
from json_fields.core.logging_config import get_logger
from json_fields.metadata.annotations import find_json_field, is_not_mapped
from json_fields.metadata.conventions import (
    collection_element,
    declared_members,
    find_backing_field,
    is_scalar,
    is_untyped,
)
from json_fields.metadata.model import ConfigurationSource, EntityType, Property

if TYPE_CHECKING:
    from json_fields.metadata.builder import ModelBuilder

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Candidate:
    name: str
    python_type: Any
    markers: Tuple[Any, ...]
    field_name: Optional[str] = None
    needs_field: bool = False


def is_complex_type(python_type: Any, entity_classes: Set[type]) -> bool:
    """True for types stored as JSON: neither scalar, nor an entity, nor a collection of entities."""
    if python_type is None or is_untyped(python_type) or is_scalar(python_type):
        return False
    if python_type in entity_classes:
        return False
    element = collection_element(python_type)
    if element is not None and element in entity_classes:
        return False
    return True


def _candidates(entity_type: EntityType) -> Iterator[_Candidate]:
    members = declared_members(entity_type.cls)
    for name, member in members.items():
        prop = entity_type.find_property(name)
        if prop is not None:
            yield _Candidate(name, prop.python_type, member.markers + prop.markers, prop.field_name)
        elif member.is_property:
            yield _Candidate(
                name,
                member.python_type,
                member.markers,
                find_backing_field(entity_type.cls, name),
                needs_field=True,
            )
        else:
            yield _Candidate(name, member.python_type, member.markers)
    # Shadow, field-backed and getter-only properties configured on the builder
    for prop in entity_type.get_properties():
        if prop.name not in members:
            yield _Candidate(prop.name, prop.python_type, prop.markers, prop.field_name)


def _configure_entity_type(entity_type: EntityType, entity_classes: Set[type]) -> int:
    configured = 0
    for candidate in _candidates(entity_type):
        name = candidate.name
        if entity_type.is_ignored(name):
            logger.debug(f"Skipping {entity_type.name}.{name}: ignored")
            continue
        if is_not_mapped(candidate.markers):
            entity_type.ignored_members.setdefault(name, ConfigurationSource.DATA_ANNOTATION)
            logger.debug(f"Skipping {entity_type.name}.{name}: marked NotMapped")
            continue
        if entity_type.find_navigation(name) is not None:
            continue

        prop = entity_type.find_property(name)
        if prop is not None and (prop.is_key or prop.converter_source == ConfigurationSource.EXPLICIT):
            continue

        marker = find_json_field(candidate.markers)
        if marker is None and not is_complex_type(candidate.python_type, entity_classes):
            continue
        if candidate.needs_field and candidate.field_name is None:
            logger.debug(f"Skipping {entity_type.name}.{name}: property without a backing field")
            continue

        if prop is None:
            prop = entity_type.add_property(
                Property(
                    name=name,
                    python_type=candidate.python_type,
                    markers=candidate.markers,
                    field_name=candidate.field_name,
                )
            )
        model_type = marker.model_type if marker is not None and marker.model_type is not None else prop.python_type
        source = ConfigurationSource.DATA_ANNOTATION if marker is not None else ConfigurationSource.CONVENTION
        converter = JsonValueConverter(model_type)
        if prop.set_value_converter(converter, source, JsonValueComparer(converter)):
            configured += 1
            logger.debug(f"Configured {entity_type.name}.{name} as JSON of {model_type!r}")
    return configured


def add_json_fields(builder: "ModelBuilder", skip_conventional_entities: Optional[bool] = None) -> int:
    """Store complex-typed properties of the model as JSON columns.

    Args:
        builder: Model builder whose model is scanned; it must not be finalized.
        skip_conventional_entities: Leave entity types that were only discovered
            through navigations untouched. Defaults to the
            ``JSON_FIELDS_SKIP_CONVENTIONAL_ENTITIES`` setting (``True``).

    Returns:
        Number of properties configured with a JSON converter.
    """
    builder.ensure_mutable()
    if skip_conventional_entities is None:
        skip_conventional_entities = get_settings().skip_conventional_entities

    entity_classes = {entity_type.cls for entity_type in builder.model}
    configured: Dict[str, int] = {}
    for entity_type in builder.model.get_entity_types():
        if skip_conventional_entities and entity_type.is_conventional:
            logger.debug(f"Skipping conventional entity type {entity_type.name}")
            continue
        configured[entity_type.name] = _configure_entity_type(entity_type, entity_classes)

    total = sum(configured.values())
    logger.info(f"Configured {total} JSON field(s) across {len(configured)} entity type(s)")
    return total
