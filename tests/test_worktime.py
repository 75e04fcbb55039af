"""Tests for the worked-time calculator."""

from datetime import datetime, timedelta, timezone

import pytest

from timekeeper.services.ledger import BreakLedger
from timekeeper.services.worktime import worked_seconds

CHECK_IN = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
CHECK_OUT = datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc)


def _lunch() -> BreakLedger:
    start = datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)
    return BreakLedger().start(start).end(start + timedelta(minutes=30))


def test_subtracts_closed_breaks():
    assert worked_seconds(CHECK_IN, CHECK_OUT, _lunch().closed()) == 32400 - 1800


def test_as_of_matches_persisted_checkout():
    breaks = _lunch().closed()
    before_persist = worked_seconds(CHECK_IN, None, breaks, as_of=CHECK_OUT)
    after_persist = worked_seconds(CHECK_IN, CHECK_OUT, breaks)
    assert before_persist == after_persist


def test_naive_and_aware_inputs_agree():
    naive_in = CHECK_IN.replace(tzinfo=None)
    assert worked_seconds(naive_in, CHECK_OUT, []) == worked_seconds(CHECK_IN, CHECK_OUT, [])


def test_open_breaks_are_ignored():
    ledger = _lunch().start(datetime(2024, 5, 1, 16, 0, tzinfo=timezone.utc), "Extra", "call")
    assert worked_seconds(CHECK_IN, CHECK_OUT, list(ledger)) == 30600


def test_never_negative():
    huge = BreakLedger.synthetic(CHECK_IN, 24 * 60)
    assert worked_seconds(CHECK_IN, CHECK_OUT, huge.closed()) == 0


def test_requires_an_end_instant():
    with pytest.raises(ValueError):
        worked_seconds(CHECK_IN, None, [])
