"""Tests for the append-only action log."""

from datetime import datetime, timedelta, timezone

import pytest

from nuclibook import action_logger
from nuclibook.action_logger import ActionKind
from nuclibook.db import db_session
from nuclibook.errors import InvalidState, NotFound
from nuclibook.models import ActionLog, from_millis, to_millis


def test_record_round_trip(actor_id: int) -> None:
    when = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)

    with db_session() as s:
        entry_id = action_logger.record(s, actor_id, when, 3, associated_id=7, note="test")

    with db_session() as s:
        entry = s.get(ActionLog, entry_id)

    assert entry.staff.id == actor_id
    assert entry.action_id == 3
    assert entry.associated_id == 7
    assert entry.note == "test"
    assert entry.when_ms == to_millis(when)
    assert entry.when == when


def test_record_without_optional_fields(actor_id: int) -> None:
    with db_session() as s:
        entry_id = action_logger.log_action(s, actor_id, ActionKind.CREATE_TRACER)

    with db_session() as s:
        entry = s.get(ActionLog, entry_id)
        assert entry.associated_id is None
        assert entry.note is None


def test_naive_datetime_is_utc() -> None:
    naive = datetime(2024, 1, 1, 0, 0, 0, 500000)
    assert from_millis(to_millis(naive)) == naive.replace(tzinfo=timezone.utc)


def test_record_unknown_actor() -> None:
    with pytest.raises(NotFound):
        with db_session() as s:
            action_logger.record(s, 999, datetime.now(timezone.utc), ActionKind.CREATE_STAFF)


def test_entries_ordered_by_timestamp_then_id(actor_id: int) -> None:
    base = datetime(2099, 1, 1, tzinfo=timezone.utc)

    with db_session() as s:
        late = action_logger.record(s, actor_id, base + timedelta(minutes=5), 1)
        tie_a = action_logger.record(s, actor_id, base, 2)
        tie_b = action_logger.record(s, actor_id, base, 3)

    with db_session() as s:
        ids = [e.id for e in action_logger.list_entries(s) if e.when_ms >= to_millis(base)]

    assert ids == [tie_a, tie_b, late]


def test_list_entries_limit_returns_latest_in_order(actor_id: int) -> None:
    base = datetime(2099, 6, 1, tzinfo=timezone.utc)

    with db_session() as s:
        ids = [action_logger.record(s, actor_id, base + timedelta(seconds=i), 1) for i in range(4)]

    with db_session() as s:
        latest = action_logger.list_entries(s, limit=2)

    assert [e.id for e in latest] == ids[-2:]


def test_entries_cannot_be_updated(actor_id: int) -> None:
    with db_session() as s:
        entry_id = action_logger.log_action(s, actor_id, ActionKind.CREATE_TRACER, note="original")

    with pytest.raises(InvalidState):
        with db_session() as s:
            s.get(ActionLog, entry_id).note = "changed"

    with db_session() as s:
        assert s.get(ActionLog, entry_id).note == "original"


def test_entries_cannot_be_deleted(actor_id: int) -> None:
    with db_session() as s:
        entry_id = action_logger.log_action(s, actor_id, ActionKind.CREATE_TRACER)

    with pytest.raises(InvalidState):
        with db_session() as s:
            s.delete(s.get(ActionLog, entry_id))


def test_correct_note_is_logged(actor_id: int) -> None:
    with db_session() as s:
        entry_id = action_logger.log_action(s, actor_id, ActionKind.CREATE_TRACER, note="typo")

    with db_session() as s:
        correction_id = action_logger.correct_note(s, entry_id, "fixed", corrected_by=actor_id)

    with db_session() as s:
        assert s.get(ActionLog, entry_id).note == "fixed"
        correction = s.get(ActionLog, correction_id)
        assert correction.action_id == ActionKind.CORRECT_ACTION_LOG
        assert correction.associated_id == entry_id
