"""Tests for the entity store and the collection fallback of the projections."""

import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from nuclibook import projections, store
from nuclibook.db import db_session
from nuclibook.errors import ConstraintViolation, NotFound, StoreUnavailable
from nuclibook.models import BookingPatternSection, PatientQuestion, Staff, Therapy, TherapyCameraType, Tracer
from nuclibook.store import RelationKind


def test_get_missing_raises_not_found() -> None:
    with pytest.raises(NotFound) as exc:
        with db_session() as s:
            store.get(s, Therapy, 42)
    assert exc.value.model == "Therapy"
    assert exc.value.entity_id == 42


def test_create_returns_generated_id(actor_id: int) -> None:
    with db_session() as s:
        tracer_id = store.create(s, Tracer(name="Tc-99m", order_time=0))

    with db_session() as s:
        assert store.get(s, Tracer, tracer_id).name == "Tc-99m"


def test_missing_foreign_key_is_constraint_violation() -> None:
    with pytest.raises(ConstraintViolation):
        with db_session() as s:
            store.create(s, Staff(username="ghost", name="Ghost", role_id=999))


def test_list_all_enabled_only(actor_id: int) -> None:
    with db_session() as s:
        store.create(s, Tracer(name="B tracer", order_time=1))
        store.create(s, Tracer(name="A tracer", order_time=2, enabled=False))

    with db_session() as s:
        assert [t.name for t in store.list_all(s, Tracer)] == ["A tracer", "B tracer"]
        assert [t.name for t in store.list_all(s, Tracer, enabled_only=True)] == ["B tracer"]


def test_list_related(therapy_id: int) -> None:
    with db_session() as s:
        sections = store.list_related(s, therapy_id, RelationKind.BOOKING_PATTERN_SECTIONS)
        questions = store.list_related(s, therapy_id, RelationKind.PATIENT_QUESTIONS)
        camera_types = store.list_related(s, therapy_id, RelationKind.CAMERA_TYPES)

    assert len(sections) == 2
    assert len(questions) == 2
    assert sorted(ct.label for ct in camera_types) == ["A", "M", "Z"]


def test_list_related_unknown_owner_is_empty() -> None:
    with db_session() as s:
        assert store.list_related(s, 123, RelationKind.PATIENT_QUESTIONS) == []


def test_delete_therapy_cascades(therapy_id: int) -> None:
    with db_session() as s:
        store.delete(s, Therapy, therapy_id)

    with db_session() as s:
        for model in (BookingPatternSection, PatientQuestion, TherapyCameraType):
            count = s.scalar(select(func.count()).select_from(model).where(model.therapy_id == therapy_id))
            assert count == 0
        # tracer e tipi di camera hanno un ciclo di vita indipendente
        assert store.list_all(s, Tracer)


def test_delete_missing_raises_not_found() -> None:
    with pytest.raises(NotFound):
        with db_session() as s:
            store.delete(s, Therapy, 5)


def test_ordered_booking_pattern_sorts_by_sequence(therapy_id: int) -> None:
    with db_session() as s:
        s.add(BookingPatternSection(therapy_id=therapy_id, sequence=-1, busy=False, min_length=1, max_length=2))

    with db_session() as s:
        therapy = store.get(s, Therapy, therapy_id)
        sections = projections.ordered_booking_pattern(s, therapy)

    assert [sec.sequence for sec in sections] == [-1, 0, 1]


LOCKED = [
    StoreUnavailable("database is locked"),
    OperationalError("SELECT", {}, Exception("database is locked")),
]


@pytest.mark.parametrize("error", LOCKED, ids=["store-unavailable", "operational-error"])
def test_failed_collection_fetch_degrades_to_empty(therapy_id: int, error: Exception, monkeypatch, caplog) -> None:
    def broken(*args, **kwargs):
        raise error

    monkeypatch.setattr(store, "list_related", broken)

    with caplog.at_level(logging.WARNING, logger="nuclibook.projections"):
        with db_session() as s:
            therapy = store.get(s, Therapy, therapy_id)
            fields = projections.therapy_display_fields(s, therapy)

    assert fields["booking-pattern-sections"].value == "[]"
    assert fields["patient-questions"].value == "[]"
    assert fields["camera-type-ids"].value == "0"
    assert fields["camera-type-summary"] == "None"
    assert fields["advice"].endswith("is unknown.")
    assert "database is locked" in caplog.text


def test_operational_error_is_store_unavailable() -> None:
    with pytest.raises(StoreUnavailable) as exc:
        with db_session() as s:
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
    assert "disk I/O error" in str(exc.value)
    assert isinstance(exc.value.__cause__, OperationalError)


def test_therapy_advice_reads_ordered_pattern(therapy_id: int) -> None:
    with db_session() as s:
        s.add(BookingPatternSection(therapy_id=therapy_id, sequence=-1, busy=False, min_length=30, max_length=30))

    with db_session() as s:
        advice = projections.therapy_advice(s, store.get(s, Therapy, therapy_id))

    assert advice.endswith("is 30 mins wait, 10 mins booking, 5-15 mins wait.")
