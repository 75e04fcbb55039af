"""Tests for the break ledger value object."""

from datetime import datetime, timedelta, timezone

import pytest

from timekeeper.core.exceptions import ConflictError, InvalidStateError, ValidationError
from timekeeper.services.ledger import STANDARD_TAKEN_MESSAGE, BreakLedger, BreakType

T0 = datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)


def test_start_appends_open_break_without_mutating():
    empty = BreakLedger()
    ledger = empty.start(T0)
    assert len(empty) == 0
    assert len(ledger) == 1
    assert ledger.open_break().start == T0
    assert ledger.open_break().type is BreakType.STANDARD


def test_end_closes_break_with_duration():
    ledger = BreakLedger().start(T0).end(T0 + timedelta(minutes=30))
    assert ledger.open_break() is None
    (closed,) = ledger.closed()
    assert closed.end == T0 + timedelta(minutes=30)
    assert closed.duration_seconds == 1800


def test_second_open_break_is_conflict():
    ledger = BreakLedger().start(T0)
    with pytest.raises(ConflictError, match="already in progress"):
        ledger.start(T0 + timedelta(minutes=1), BreakType.EXTRA, "doctor")


def test_second_standard_break_is_conflict():
    ledger = BreakLedger().start(T0).end(T0 + timedelta(minutes=15))
    with pytest.raises(ConflictError) as exc:
        ledger.start(T0 + timedelta(hours=1))
    assert exc.value.message == STANDARD_TAKEN_MESSAGE


def test_extra_break_after_standard_is_allowed():
    ledger = BreakLedger().start(T0).end(T0 + timedelta(minutes=15))
    ledger = ledger.start(T0 + timedelta(hours=1), "Extra", "  school pickup ")
    assert ledger.open_break().reason == "school pickup"
    assert ledger.open_break().type is BreakType.EXTRA


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_extra_break_requires_reason(reason):
    with pytest.raises(ValidationError):
        BreakLedger().start(T0, BreakType.EXTRA, reason)


def test_unknown_break_type_is_validation_error():
    with pytest.raises(ValidationError):
        BreakLedger().start(T0, "Lunch")


def test_standard_break_drops_reason():
    ledger = BreakLedger().start(T0, BreakType.STANDARD, "ignored")
    assert ledger.open_break().reason is None


def test_end_without_open_break_is_invalid_state():
    with pytest.raises(InvalidStateError):
        BreakLedger().end(T0)


def test_end_clamps_negative_duration():
    ledger = BreakLedger().start(T0).end(T0 - timedelta(seconds=5))
    assert ledger.closed()[0].duration_seconds == 0


def test_json_shape_omits_unset_fields():
    raw = BreakLedger().start(T0).to_json()
    assert raw == [{"start": raw[0]["start"], "type": "Standard"}]
    assert BreakLedger.from_json(raw) == BreakLedger().start(T0)


def test_from_json_accepts_naive_timestamps_as_utc():
    ledger = BreakLedger.from_json(
        [{"start": "2024-05-01T13:00:00", "end": "2024-05-01T13:10:00", "type": "Standard", "duration_seconds": 600}]
    )
    assert ledger.closed()[0].start == T0


def test_synthetic_replaces_with_single_standard_break():
    check_in = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    ledger = BreakLedger.synthetic(check_in, 30)
    (only,) = list(ledger)
    assert only.start == check_in + timedelta(seconds=1)
    assert only.end == check_in + timedelta(seconds=1801)
    assert only.duration_seconds == 1800
    assert only.type is BreakType.STANDARD


def test_synthetic_rejects_negative_minutes():
    with pytest.raises(ValidationError):
        BreakLedger.synthetic(T0, -5)


def test_synthetic_rejects_more_than_a_day():
    with pytest.raises(ValidationError):
        BreakLedger.synthetic(T0, 24 * 60 + 1)
