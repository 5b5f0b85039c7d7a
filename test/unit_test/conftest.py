"""Shared entity classes and database fixtures for unit tests.

Entity classes are created fresh for every test: SQLAlchemy maps a class at
most once, and ``finalize()`` maps every entity type of the model.
"""

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Annotated, Iterator, Optional

import pytest
from sqlalchemy import Engine

from json_fields.database import create_all, create_engine, create_sessionmaker
from json_fields.metadata import ModelBuilder, NotMapped


def make_entities() -> SimpleNamespace:
    @dataclass(eq=False)
    class Address:
        street: str = ""
        city: str = ""

    @dataclass(eq=False)
    class AddressWithEquality:
        street: str = ""
        city: str = ""

        def __eq__(self, other: object) -> bool:
            return isinstance(other, AddressWithEquality) and self.street == other.street

        def __hash__(self) -> int:
            return hash(self.street)

    @dataclass
    class Office:
        id: Optional[int] = None
        address: Optional[Address] = None

    @dataclass
    class Customer:
        id: Optional[int] = None
        name: Optional[str] = None
        address: Optional[Address] = None
        address2: Optional[AddressWithEquality] = None
        office: Optional[Office] = None
        office_not_mapped: Annotated[Optional[Office], NotMapped] = None

    class CustomerWithPlainField:
        id: Optional[int]

        def __init__(self, name: Optional[str] = None) -> None:
            self.id = None
            self._name = name

        @property
        def name(self) -> Optional[str]:
            return self._name

    return SimpleNamespace(
        Address=Address,
        AddressWithEquality=AddressWithEquality,
        Office=Office,
        Customer=Customer,
        CustomerWithPlainField=CustomerWithPlainField,
    )


@pytest.fixture
def entities() -> SimpleNamespace:
    return make_entities()


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine."""
    sqlite_engine = create_engine("sqlite://")
    try:
        yield sqlite_engine
    finally:
        sqlite_engine.dispose()


@pytest.fixture
def mapped_builder(builder: ModelBuilder, entities: SimpleNamespace, engine: Engine) -> ModelBuilder:
    """Builder with the sample entities registered, JSON fields added, mapped and created."""
    builder.entity(entities.Customer)
    builder.entity(entities.CustomerWithPlainField).property("name").has_field("_name")
    builder.add_json_fields()
    builder.finalize()
    create_all(engine, builder.metadata)
    return builder


@pytest.fixture
def session_factory(mapped_builder: ModelBuilder, engine: Engine):
    return create_sessionmaker(engine)
