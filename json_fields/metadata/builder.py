"""
Model builder over SQLAlchemy imperative mapping.

``ModelBuilder`` collects entity configuration in a ``Model`` before anything
is mapped, which gives conventions such as ``add_json_fields`` a place to run.
``finalize()`` then builds one ``Table`` per entity type and maps the classes
with ``registry.map_imperatively``.

Typical usage::

    builder = ModelBuilder()
    builder.entity(Customer).ignore("office")
    builder.entity(Invoice).property("lines").has_field("_lines")
    builder.add_json_fields()
    builder.finalize()
    builder.metadata.create_all(engine)
"""

from __future__ import annotations

import inspect
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import Column, ForeignKey, MetaData, Table
from sqlalchemy.orm import registry as Registry
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeEngine

from json_fields.change_tracking import JSON_FIELDS_INFO_KEY, register_entity_type
from json_fields.converters import JsonValueComparer, JsonValueConverter
from json_fields.core.logging_config import get_logger
from json_fields.errors import (
    AmbiguousTypeError,
    MissingBackingFieldError,
    MissingKeyError,
    ModelFinalizedError,
    UnknownMemberError,
)
from json_fields.metadata.annotations import find_json_field, is_not_mapped
from json_fields.metadata.conventions import (
    column_type_for,
    declared_members,
    find_backing_field,
    find_key_name,
    find_member,
    is_scalar,
    looks_like_entity,
    unwrap,
)
from json_fields.metadata.model import (
    ConfigurationSource,
    EntityType,
    Model,
    Navigation,
    Property,
)

logger = get_logger(__name__)


class PropertyBuilder:
    """Fluent configuration of a single property."""

    def __init__(self, builder: "ModelBuilder", entity_type: EntityType, prop: Property) -> None:
        self._builder = builder
        self._entity_type = entity_type
        self._property = prop

    @property
    def metadata(self) -> Property:
        return self._property

    def has_field(self, field_name: str) -> "PropertyBuilder":
        """Store the value in ``field_name`` instead of the member itself."""
        self._builder.ensure_mutable()
        self._property.field_name = field_name
        self._property.is_shadow = False
        if self._property.python_type is None:
            member = find_member(self._entity_type.cls, field_name)
            if member is None:
                raise UnknownMemberError(self._entity_type.name, self._property.name)
            self._property.python_type = member.python_type
        return self

    def is_required(self, required: bool = True) -> "PropertyBuilder":
        self._builder.ensure_mutable()
        self._property.nullable = not required
        return self

    def has_conversion(self, type_engine: TypeEngine) -> "PropertyBuilder":
        """Use ``type_engine`` as the column type; the JSON scan leaves the property alone."""
        self._builder.ensure_mutable()
        self._property.set_value_converter(type_engine, ConfigurationSource.EXPLICIT)
        return self

    def has_json_conversion(self, model_type: Any = None, **options: Any) -> "PropertyBuilder":
        """Store the property as JSON, whatever its type.

        Args:
            model_type: Type used for (de)serialization, defaults to the property type.
            **options: Forwarded to ``JsonValueConverter``.
        """
        self._builder.ensure_mutable()
        converter = JsonValueConverter(model_type or self._property.python_type, **options)
        self._property.set_value_converter(converter, ConfigurationSource.EXPLICIT, JsonValueComparer(converter))
        return self


class EntityTypeBuilder:
    """Fluent configuration of an entity type."""

    def __init__(self, builder: "ModelBuilder", entity_type: EntityType) -> None:
        self._builder = builder
        self._entity_type = entity_type

    @property
    def metadata(self) -> EntityType:
        return self._entity_type

    def property(self, name: str, type_: Any = None) -> PropertyBuilder:
        """Configure the property ``name``.

        A name the class does not declare creates a shadow property; ``type_``
        is required in that case.
        """
        self._builder.ensure_mutable()
        entity_type = self._entity_type
        entity_type.ignored_members.pop(name, None)

        prop = entity_type.find_property(name)
        if prop is not None:
            prop.source = ConfigurationSource.EXPLICIT
            if type_ is not None:
                unwrapped = unwrap(type_)
                prop.python_type = unwrapped.python_type
                prop.markers = unwrapped.markers
            return PropertyBuilder(self._builder, entity_type, prop)

        member = find_member(entity_type.cls, name)
        if member is not None:
            unwrapped = unwrap(type_) if type_ is not None else None
            prop = Property(
                name=name,
                python_type=unwrapped.python_type if unwrapped else member.python_type,
                source=ConfigurationSource.EXPLICIT,
                nullable=unwrapped.nullable if unwrapped else member.nullable,
                markers=unwrapped.markers if unwrapped else member.markers,
                field_name=find_backing_field(entity_type.cls, name) if member.is_property else None,
            )
        elif type_ is not None:
            unwrapped = unwrap(type_)
            prop = Property(
                name=name,
                python_type=unwrapped.python_type,
                source=ConfigurationSource.EXPLICIT,
                markers=unwrapped.markers,
                is_shadow=True,
            )
            logger.debug(f"Added shadow property {entity_type.name}.{name}")
        else:
            prop = Property(name=name, python_type=None, source=ConfigurationSource.EXPLICIT, is_shadow=True)
        entity_type.add_property(prop)
        return PropertyBuilder(self._builder, entity_type, prop)

    def ignore(self, *names: str) -> "EntityTypeBuilder":
        """Exclude members from the model, JSON scan included."""
        self._builder.ensure_mutable()
        for name in names:
            self._entity_type.remove_member(name)
            self._entity_type.ignored_members[name] = ConfigurationSource.EXPLICIT
        self._builder.prune_unreachable()
        return self

    def has_key(self, *names: str) -> "EntityTypeBuilder":
        self._builder.ensure_mutable()
        for prop in self._entity_type.get_key():
            prop.is_key = False
        for name in names:
            prop = self.property(name).metadata
            prop.is_key = True
            prop.nullable = False
        return self

    def to_table(self, name: str) -> "EntityTypeBuilder":
        self._builder.ensure_mutable()
        self._entity_type.table_name = name
        return self


class ModelBuilder:
    """Collects entity types and maps them once they are fully configured.

    Args:
        metadata: ``MetaData`` receiving the tables, a new one by default.
        registry: SQLAlchemy ``registry`` used for mapping, a new one bound to
            ``metadata`` by default.
    """

    def __init__(self, metadata: Optional[MetaData] = None, registry: Optional[Registry] = None) -> None:
        if registry is not None:
            self.registry = registry
            self.metadata = registry.metadata
        else:
            self.metadata = metadata if metadata is not None else MetaData()
            self.registry = Registry(metadata=self.metadata)
        self.model = Model()
        self._ignored_types: Set[type] = set()

    def ensure_mutable(self) -> None:
        if self.model.is_finalized:
            raise ModelFinalizedError()

    # ------------------------------------------------------------------
    # Entity registration
    # ------------------------------------------------------------------

    def entity(self, cls: type) -> EntityTypeBuilder:
        """Register ``cls`` explicitly and discover its members by convention."""
        self.ensure_mutable()
        self._ignored_types.discard(cls)
        entity_type = self.model.find_entity_type(cls)
        if entity_type is None:
            entity_type = self.model.add_entity_type(EntityType(cls, source=ConfigurationSource.EXPLICIT))
            self._discover(entity_type)
        elif entity_type.is_conventional:
            entity_type.source = ConfigurationSource.EXPLICIT
            logger.debug(f"Promoted conventional entity type {entity_type.name} to explicit")
        return EntityTypeBuilder(self, entity_type)

    def ignore(self, cls: type) -> "ModelBuilder":
        """Remove ``cls`` from the model and keep conventions from adding it back."""
        self.ensure_mutable()
        self._ignored_types.add(cls)
        self.model.remove_entity_type(cls)
        self.prune_unreachable()
        return self

    def add_json_fields(self, skip_conventional_entities: Optional[bool] = None) -> int:
        """Store complex-typed properties as JSON; see ``json_fields.extensions.add_json_fields``."""
        from json_fields.extensions import add_json_fields

        return add_json_fields(self, skip_conventional_entities=skip_conventional_entities)

    def _add_conventional(self, cls: type) -> EntityType:
        entity_type = self.model.find_entity_type(cls)
        if entity_type is None:
            entity_type = self.model.add_entity_type(EntityType(cls, source=ConfigurationSource.CONVENTION))
            logger.debug(f"Discovered entity type {entity_type.name} by convention")
            self._discover(entity_type)
        return entity_type

    def _discover(self, entity_type: EntityType) -> None:
        cls = entity_type.cls
        members = declared_members(cls)
        key_name = find_key_name(cls, members)

        for member in members.values():
            name = member.name
            if is_not_mapped(member.markers):
                entity_type.ignored_members.setdefault(name, ConfigurationSource.DATA_ANNOTATION)
                continue
            if entity_type.is_ignored(name) or name in entity_type.properties:
                continue

            field_name = None
            if member.is_property:
                field_name = find_backing_field(cls, name)
                if field_name is None:
                    logger.debug(f"{entity_type.name}.{name} is a property without a backing field, not mapped")
                    continue

            if is_scalar(member.python_type):
                is_key = name == key_name
                entity_type.add_property(
                    Property(
                        name=name,
                        python_type=member.python_type,
                        nullable=member.nullable and not is_key,
                        field_name=field_name,
                        is_key=is_key,
                        markers=member.markers,
                    )
                )
            elif (
                find_json_field(member.markers) is None
                and member.python_type not in self._ignored_types
                and looks_like_entity(member.python_type)
            ):
                target = self._add_conventional(member.python_type)
                entity_type.navigations[name] = Navigation(name, target)

    def prune_unreachable(self) -> None:
        """Drop conventional entity types no explicit type reaches through navigations."""
        reachable: Set[type] = set()
        pending: List[EntityType] = [et for et in self.model if not et.is_conventional]
        while pending:
            entity_type = pending.pop()
            if entity_type.cls in reachable:
                continue
            reachable.add(entity_type.cls)
            pending.extend(nav.target for nav in entity_type.get_navigations())
        for entity_type in self.model.get_entity_types():
            if entity_type.cls not in reachable:
                logger.debug(f"Removed unreachable conventional entity type {entity_type.name}")
                self.model.remove_entity_type(entity_type.cls)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(self) -> Model:
        """Build tables and map every entity type; the model is frozen afterwards."""
        self.ensure_mutable()
        tables: Dict[type, Table] = {}
        for entity_type in self.model:
            tables[entity_type.cls] = self._build_table(entity_type)

        for entity_type in self.model:
            table = tables[entity_type.cls]
            properties: Dict[str, Any] = {}
            for prop in entity_type.get_properties():
                properties[prop.attribute_name] = table.c[prop.name]
            for navigation in entity_type.get_navigations():
                properties[navigation.name] = relationship(
                    navigation.target.cls,
                    foreign_keys=[table.c[navigation.foreign_key_name]],
                )
            comparers = {p.attribute_name: p.value_comparer for p in entity_type.get_json_properties()}
            mapper = self.registry.map_imperatively(entity_type.cls, table, properties=properties)
            mapper.class_manager.info[JSON_FIELDS_INFO_KEY] = comparers
            if comparers:
                register_entity_type(entity_type.cls)
            logger.debug(f"Mapped {entity_type!r} with {len(comparers)} JSON column(s)")

        self.model.is_finalized = True
        logger.info(f"Model finalized with {len(self.model)} entity type(s)")
        return self.model

    def _build_table(self, entity_type: EntityType) -> Table:
        key = entity_type.get_key()
        if not key:
            raise MissingKeyError(entity_type.name)

        foreign_keys: Dict[str, str] = {}
        for navigation in entity_type.get_navigations():
            target_key = navigation.target.get_key()
            if len(target_key) != 1:
                raise MissingKeyError(navigation.target.name)
            foreign_keys[navigation.foreign_key_name] = f"{navigation.target.table_name}.{target_key[0].name}"

        autoincrement = len(key) == 1 and key[0].python_type is int
        columns: List[Column] = []
        for prop in entity_type.get_properties():
            self._check_attribute(entity_type, prop)
            type_engine = prop.value_converter
            if type_engine is None:
                type_engine = column_type_for(prop.python_type)
            if type_engine is None:
                raise AmbiguousTypeError(entity_type.name, prop.name, prop.python_type)
            args: List[Any] = [prop.name, type_engine]
            if prop.name in foreign_keys:
                args.append(ForeignKey(foreign_keys.pop(prop.name)))
            columns.append(
                Column(
                    *args,
                    primary_key=prop.is_key,
                    nullable=prop.nullable and not prop.is_key,
                    autoincrement=autoincrement if prop.is_key else "auto",
                )
            )

        for column_name, target in foreign_keys.items():
            target_key = next(
                nav.target.get_key()[0]
                for nav in entity_type.get_navigations()
                if nav.foreign_key_name == column_name
            )
            fk_type = column_type_for(target_key.python_type)
            columns.append(Column(column_name, fk_type, ForeignKey(target), nullable=True))

        return Table(entity_type.table_name, self.metadata, *columns)

    @staticmethod
    def _check_attribute(entity_type: EntityType, prop: Property) -> None:
        if prop.python_type is None:
            raise UnknownMemberError(entity_type.name, prop.name)
        static = inspect.getattr_static(entity_type.cls, prop.attribute_name, None)
        if isinstance(static, property):
            raise MissingBackingFieldError(entity_type.name, prop.name)

