"""
In-memory model of entity types and their properties.

The model is what the JSON convention scan walks. It is populated by
``ModelBuilder`` and turned into SQLAlchemy tables and mappers by
``ModelBuilder.finalize()``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.types import TypeEngine

from json_fields.converters.json_converter import JsonValueConverter
from json_fields.metadata.conventions import snake_case


class ConfigurationSource(enum.IntEnum):
    """Where a piece of configuration came from; higher values win."""

    CONVENTION = 0
    DATA_ANNOTATION = 1
    EXPLICIT = 2

    def overrides(self, other: "ConfigurationSource") -> bool:
        return self >= other


@dataclass(eq=False)
class Property:
    """A scalar or JSON-backed column of an entity type."""

    name: str
    python_type: Any
    source: ConfigurationSource = ConfigurationSource.CONVENTION
    nullable: bool = True
    field_name: Optional[str] = None
    is_shadow: bool = False
    is_key: bool = False
    markers: Tuple[Any, ...] = ()
    value_converter: Optional[TypeEngine] = None
    value_comparer: Optional[Any] = None
    converter_source: Optional[ConfigurationSource] = None

    @property
    def attribute_name(self) -> str:
        """Instance attribute that holds the value once mapped."""
        return self.field_name or self.name

    @property
    def is_json(self) -> bool:
        return isinstance(self.value_converter, JsonValueConverter)

    def set_value_converter(
        self, converter: Optional[TypeEngine], source: ConfigurationSource, comparer: Any = None
    ) -> bool:
        """Apply ``converter`` unless a stronger source already configured one."""
        if self.converter_source is not None and not source.overrides(self.converter_source):
            return False
        self.value_converter = converter
        self.value_comparer = comparer
        self.converter_source = source
        return True


@dataclass(eq=False)
class Navigation:
    """A reference from one entity type to another."""

    name: str
    target: "EntityType"
    source: ConfigurationSource = ConfigurationSource.CONVENTION

    @property
    def foreign_key_name(self) -> str:
        return f"{self.name}_id"


@dataclass(eq=False)
class EntityType:
    """An entity class and the configuration collected for it."""

    cls: type
    source: ConfigurationSource = ConfigurationSource.CONVENTION
    table_name: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    navigations: Dict[str, Navigation] = field(default_factory=dict)
    ignored_members: Dict[str, ConfigurationSource] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.table_name is None:
            self.table_name = snake_case(self.cls.__name__)

    @property
    def name(self) -> str:
        return self.cls.__name__

    @property
    def is_conventional(self) -> bool:
        return self.source == ConfigurationSource.CONVENTION

    def find_property(self, name: str) -> Optional[Property]:
        return self.properties.get(name)

    def get_properties(self) -> List[Property]:
        return list(self.properties.values())

    def find_navigation(self, name: str) -> Optional[Navigation]:
        return self.navigations.get(name)

    def get_navigations(self) -> List[Navigation]:
        return list(self.navigations.values())

    def get_key(self) -> List[Property]:
        return [p for p in self.properties.values() if p.is_key]

    def get_json_properties(self) -> List[Property]:
        return [p for p in self.properties.values() if p.is_json]

    def is_ignored(self, name: str) -> bool:
        return name in self.ignored_members

    def add_property(self, prop: Property) -> Property:
        self.navigations.pop(prop.name, None)
        self.properties[prop.name] = prop
        return prop

    def remove_member(self, name: str) -> None:
        self.properties.pop(name, None)
        self.navigations.pop(name, None)

    def __repr__(self) -> str:
        return f"EntityType(name={self.name}, table={self.table_name}, source={self.source.name})"


class Model:
    """The set of entity types known to a ``ModelBuilder``."""

    def __init__(self) -> None:
        self._entity_types: Dict[type, EntityType] = {}
        self.is_finalized = False

    def find_entity_type(self, cls: type) -> Optional[EntityType]:
        return self._entity_types.get(cls)

    def get_entity_types(self) -> List[EntityType]:
        return list(self._entity_types.values())

    def add_entity_type(self, entity_type: EntityType) -> EntityType:
        self._entity_types[entity_type.cls] = entity_type
        return entity_type

    def remove_entity_type(self, cls: type) -> Optional[EntityType]:
        removed = self._entity_types.pop(cls, None)
        if removed is not None:
            for other in self._entity_types.values():
                for navigation in other.get_navigations():
                    if navigation.target is removed:
                        other.navigations.pop(navigation.name)
        return removed

    def __contains__(self, cls: object) -> bool:
        return cls in self._entity_types

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self.get_entity_types())

    def __len__(self) -> int:
        return len(self._entity_types)
