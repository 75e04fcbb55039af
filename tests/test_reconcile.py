"""
Reconciler tests — lazy repair of records missing derived values.
"""

from datetime import datetime, timedelta

import pytest

from timekeeper.models.attendance import AttendanceRecord
from timekeeper.models.leave import APPROVED, HALF_DAY_LEAVE, LeaveRequest
from timekeeper.services.ledger import BreakLedger
from timekeeper.services.reconcile import Reconciler, needs_repair
from timekeeper.services.stores import SqlLeaveApprovalLookup, SqlRecordStore

from conftest import POLICY


class _FlakyLeave:
    """Leave lookup that fails for one day."""

    def __init__(self, bad_day: str) -> None:
        self.bad_day = bad_day

    async def has_approved_half_day(self, user_id: int, day: str) -> bool:
        if day == self.bad_day:
            raise RuntimeError("leave service timeout")
        return False


async def _legacy(db_session, user_id: int, day: str, hours: float = 9) -> AttendanceRecord:
    """A checked-out record written before flags existed."""
    check_in = datetime.fromisoformat(f"{day}T09:00:00+00:00")
    record = AttendanceRecord(
        user_id=user_id,
        date=day,
        check_in=check_in,
        check_out=check_in + timedelta(hours=hours),
        breaks=BreakLedger.synthetic(check_in, 30).to_json(),
    )
    return await SqlRecordStore(db_session).create(record)


@pytest.mark.asyncio
async def test_legacy_record_repaired_on_read(service, db_session, accounts):
    alice = accounts["alice"].id
    legacy = await _legacy(db_session, alice, "2024-04-30")
    assert needs_repair(legacy)

    (first,) = await service.get_history(alice)
    assert first.total_worked_seconds == 30600
    assert first.low_time_flag is False
    assert first.extra_time_flag is True
    assert first.version == 2

    (second,) = await service.get_history(alice)
    assert second.version == 2
    assert (second.total_worked_seconds, second.low_time_flag, second.extra_time_flag) == (
        30600,
        False,
        True,
    )


@pytest.mark.asyncio
async def test_reconcile_range_counts(service, db_session, accounts):
    await _legacy(db_session, accounts["alice"].id, "2024-04-29", hours=5)
    await _legacy(db_session, accounts["bob"].id, "2024-04-30")

    assert await service.reconcile_range() == (2, 2)
    assert await service.reconcile_range() == (2, 0)

    records = await service.list_all(user_id=accounts["alice"].id)
    assert records[0].low_time_flag is True


@pytest.mark.asyncio
async def test_open_record_is_not_touched(service, actors):
    record = await service.clock_in(actors["alice"])
    record.total_worked_seconds = None
    assert not needs_repair(record)


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_the_batch(db_session, accounts):
    alice = accounts["alice"].id
    bad = await _legacy(db_session, alice, "2024-04-28")
    good = await _legacy(db_session, alice, "2024-04-29")

    reconciler = Reconciler(SqlRecordStore(db_session), _FlakyLeave("2024-04-28"), POLICY)
    result = await reconciler.reconcile([bad, good])

    assert [r.id for r in result] == [bad.id, good.id]
    assert reconciler.repaired == 1
    assert result[0].total_worked_seconds is None
    assert result[1].total_worked_seconds == 30600


@pytest.mark.asyncio
async def test_reconcile_uses_half_day_leave(db_session, accounts):
    alice = accounts["alice"].id
    db_session.add(
        LeaveRequest(
            user_id=alice,
            start_date="2024-04-29",
            end_date="2024-04-30",
            category=HALF_DAY_LEAVE,
            status=APPROVED,
        )
    )
    await db_session.commit()
    record = await _legacy(db_session, alice, "2024-04-30", hours=5)

    reconciler = Reconciler(SqlRecordStore(db_session), SqlLeaveApprovalLookup(db_session), POLICY)
    (record,) = await reconciler.reconcile([record])
    assert record.total_worked_seconds == 16200
    assert record.low_time_flag is False


@pytest.mark.asyncio
async def test_stale_repair_is_skipped_not_raised(session_factory, accounts):
    """Another writer bumped the version after this batch was read."""
    async with session_factory() as setup:
        legacy = await _legacy(setup, accounts["alice"].id, "2024-04-30")

    async with session_factory() as reader, session_factory() as writer:
        (stale,) = await SqlRecordStore(reader).list(user_id=accounts["alice"].id)

        fresh = await SqlRecordStore(writer).get_by_id(legacy.id)
        fresh.notes = "edited elsewhere"
        await SqlRecordStore(writer).update(fresh, 1)

        reconciler = Reconciler(SqlRecordStore(reader), SqlLeaveApprovalLookup(reader), POLICY)
        (result,) = await reconciler.reconcile([stale])

        assert reconciler.repaired == 0
        assert result.version == 2
        assert result.notes == "edited elsewhere"
        assert result.total_worked_seconds is None
