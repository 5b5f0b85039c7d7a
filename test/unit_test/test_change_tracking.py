"""Unit tests for in-place change detection of JSON-backed attributes."""

from unittest.mock import patch

import pytest
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, sessionmaker

from json_fields import JsonTrackingSession, detect_changes, install_change_tracking
from json_fields.change_tracking import DETECTED_INFO_KEY, SNAPSHOT_INFO_KEY, _before_flush
from json_fields.database import create_sessionmaker


def _reload(session, entity_cls, instance):
    """Detach ``instance`` and load it again so it starts out unchanged."""
    session.expunge(instance)
    return session.get(entity_cls, instance.id)


class TestDetectChanges:
    """Nested mutation flags the owning entity and property."""

    def test_detect_changes_plain_object(self, session_factory, entities):
        with session_factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()

            customer = _reload(session, entities.Customer, customer)
            assert customer not in session.dirty, "Precondition: entity is unchanged"

            customer.address.street = "Street 2"
            flagged = detect_changes(session)

            assert flagged == 1
            assert customer in session.dirty, "Entity is marked as modified"
            assert inspect(customer).attrs.address.history.has_changes(), "Property is marked as modified"
            assert not inspect(customer).attrs.address2.history.has_changes()

    def test_detect_changes_with_custom_equality(self, session_factory, entities):
        with session_factory() as session:
            customer = entities.Customer(address2=entities.AddressWithEquality(street="Street 1"))
            session.add(customer)
            session.commit()

            customer = _reload(session, entities.Customer, customer)
            assert customer not in session.dirty, "Precondition: entity is unchanged"

            customer.address2.street = "Street 2"
            detect_changes(session)

            assert customer in session.dirty
            assert inspect(customer).attrs.address2.history.has_changes()

    def test_custom_equality_decides_what_counts_as_change(self, session_factory, entities):
        """Fields ignored by the type's own ``__eq__`` are not reported."""
        with session_factory() as session:
            customer = entities.Customer(address2=entities.AddressWithEquality(street="Street 1", city="Oulu"))
            session.add(customer)
            session.commit()

            customer = _reload(session, entities.Customer, customer)
            customer.address2.city = "Turku"

            assert detect_changes(session) == 0
            assert customer not in session.dirty

    def test_unchanged_values_are_not_flagged(self, session_factory, entities):
        with session_factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()

            assert detect_changes(session) == 0
            assert customer not in session.dirty

    def test_snapshot_taken_after_flush(self, session_factory, entities):
        with session_factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.flush()

            snapshots = inspect(customer).info[SNAPSHOT_INFO_KEY]
            assert snapshots["address"].street == "Street 1"
            assert snapshots["address"] is not customer.address

    def test_flush_writes_nested_change(self, session_factory, entities):
        with session_factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()
            customer_id = customer.id

            customer.address.street = "Street 2"
            session.commit()

        with session_factory() as session:
            assert session.get(entities.Customer, customer_id).address.street == "Street 2"

    def test_explicit_flush_writes_nested_change(self, session_factory, entities, engine):
        with session_factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()

            customer.address.street = "Street 2"
            session.flush()

            assert not inspect(customer).attrs.address.history.has_changes()
            assert inspect(customer).info[SNAPSHOT_INFO_KEY]["address"].street == "Street 2"

    def test_pending_instances_are_skipped(self, session_factory, entities):
        with session_factory() as session:
            session.add(entities.Customer(address=entities.Address(street="Street 1")))

            assert detect_changes(session) == 0


class TestInstallChangeTracking:
    """Opting sessions into detection before flush."""

    def test_plain_session_needs_explicit_detection(self, mapped_builder, engine, entities):
        factory = sessionmaker(engine, expire_on_commit=False)
        with factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()
            customer_id = customer.id

            customer = _reload(session, entities.Customer, customer)
            customer.address.street = "Street 2"
            session.commit()

        with factory() as session:
            assert session.get(entities.Customer, customer_id).address.street == "Street 1"

    def test_install_on_session_instance(self, mapped_builder, engine, entities):
        with Session(engine, expire_on_commit=False) as session:
            install_change_tracking(session)
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()
            customer_id = customer.id

            customer.address.street = "Street 2"
            session.commit()

        with Session(engine) as session:
            assert session.get(entities.Customer, customer_id).address.street == "Street 2"

    def test_install_is_idempotent(self, engine):
        factory = sessionmaker(engine)

        assert install_change_tracking(factory) is factory
        assert install_change_tracking(factory) is factory

    def test_tracking_session_class(self, session_factory):
        with session_factory() as session:
            assert isinstance(session, JsonTrackingSession)

    @pytest.mark.parametrize("expire_on_commit", [True, False])
    def test_snapshot_survives_commit(self, mapped_builder, engine, entities, expire_on_commit):
        factory = sessionmaker(engine, class_=JsonTrackingSession, expire_on_commit=expire_on_commit)
        with factory() as session:
            customer = entities.Customer(address=entities.Address(street="Street 1"))
            session.add(customer)
            session.commit()
            customer_id = customer.id

            customer.address.street = "Street 2"
            session.commit()

        with factory() as session:
            assert session.get(entities.Customer, customer_id).address.street == "Street 2"


class TestDetectionRunsOncePerWrite:
    """A commit or flush compares each JSON-backed value once."""

    def _saved_customer(self, session, entities):
        customer = entities.Customer(address=entities.Address(street="Street 1"))
        session.add(customer)
        session.commit()
        return customer

    def test_commit_runs_detection_once(self, session_factory, entities):
        with session_factory() as session:
            customer = self._saved_customer(session, entities)
            customer.address.street = "Street 2"

            with patch("json_fields.change_tracking.detect_changes", wraps=detect_changes) as detect:
                session.commit()

            assert detect.call_count == 1
            assert DETECTED_INFO_KEY not in session.info

    def test_flush_runs_detection_once(self, session_factory, entities):
        with session_factory() as session:
            customer = self._saved_customer(session, entities)
            customer.address.street = "Street 2"

            with patch("json_fields.change_tracking.detect_changes", wraps=detect_changes) as detect:
                session.flush()

            assert detect.call_count == 1
            assert DETECTED_INFO_KEY not in session.info

    def test_detection_runs_again_after_clean_commit(self, session_factory, entities):
        with session_factory() as session:
            customer = self._saved_customer(session, entities)
            session.commit()
            assert DETECTED_INFO_KEY not in session.info

            customer.address.street = "Street 2"
            session.commit()
            customer_id = customer.id

        with session_factory() as session:
            assert session.get(entities.Customer, customer_id).address.street == "Street 2"

    def test_install_on_tracking_session_is_noop(self, session_factory, entities):
        with session_factory() as session:
            install_change_tracking(session)
            customer = self._saved_customer(session, entities)
            customer.address.street = "Street 2"

            with patch("json_fields.change_tracking.detect_changes", wraps=detect_changes) as detect:
                session.commit()

            assert not event.contains(session, "before_flush", _before_flush)
            assert detect.call_count == 1

    def test_install_on_tracking_sessionmaker_is_noop(self, engine):
        factory = create_sessionmaker(engine)

        install_change_tracking(factory)

        assert not event.contains(factory.class_, "before_flush", _before_flush)

    def test_install_on_plain_session_twice(self, mapped_builder, engine, entities):
        with Session(engine, expire_on_commit=False) as session:
            install_change_tracking(session)
            install_change_tracking(session)
            customer = self._saved_customer(session, entities)
            customer.address.street = "Street 2"

            with patch("json_fields.change_tracking.detect_changes", wraps=detect_changes) as detect:
                session.commit()

            assert detect.call_count == 1
