"""Unit tests for snapshot comparison of JSON-backed values."""

from dataclasses import dataclass
from typing import List

import pytest
from pydantic import BaseModel

from json_fields.converters import JsonValueComparer, JsonValueConverter
from json_fields.converters.comparer import has_custom_equality


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


class Preferences(BaseModel):
    channels: List[str] = []


@pytest.fixture
def comparer() -> JsonValueComparer:
    return JsonValueComparer(JsonValueConverter(Address))


class TestSnapshot:
    def test_snapshot_is_detached_copy(self, comparer):
        address = Address(street="Main")

        snapshot = comparer.snapshot(address)
        address.street = "Side"

        assert snapshot is not address
        assert snapshot.street == "Main"

    def test_snapshot_of_none(self, comparer):
        assert comparer.snapshot(None) is None

    def test_snapshot_of_collection(self):
        comparer = JsonValueComparer(JsonValueConverter(List[str]))
        tags = ["a"]

        snapshot = comparer.snapshot(tags)
        tags.append("b")

        assert snapshot == ["a"]


class TestEquals:
    def test_plain_objects_compare_by_content(self, comparer):
        assert comparer.equals(Address(street="Main"), Address(street="Main"))
        assert not comparer.equals(Address(street="Main"), Address(street="Side"))

    def test_none_only_equals_none(self, comparer):
        assert comparer.equals(None, None)
        assert not comparer.equals(None, Address())
        assert not comparer.equals(Address(), None)

    def test_custom_equality_is_used(self):
        comparer = JsonValueComparer(JsonValueConverter(AddressWithEquality))

        assert comparer.equals(AddressWithEquality("Main", "Oulu"), AddressWithEquality("Main", "Turku"))
        assert not comparer.equals(AddressWithEquality("Main"), AddressWithEquality("Side"))

    def test_pydantic_models(self):
        comparer = JsonValueComparer(JsonValueConverter(Preferences))

        assert comparer.equals(Preferences(channels=["email"]), Preferences(channels=["email"]))
        assert not comparer.equals(Preferences(channels=["email"]), Preferences(channels=[]))


class TestHash:
    def test_equal_values_hash_equal(self, comparer):
        assert comparer.hash(Address(street="Main")) == comparer.hash(Address(street="Main"))

    def test_hash_of_none(self, comparer):
        assert comparer.hash(None) == 0


@pytest.mark.parametrize(
    "value,expected",
    [
        (Address(), False),
        (AddressWithEquality(), True),
        (Preferences(), True),
        (object(), False),
    ],
)
def test_has_custom_equality(value, expected):
    assert has_custom_equality(value) is expected


def test_repr(comparer):
    assert "Address" in repr(comparer)
