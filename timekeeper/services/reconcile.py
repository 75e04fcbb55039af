"""
Reconciler — lazy repair of records computed before flag logic existed.

Read paths hand every record they are about to return to
``Reconciler.reconcile``. A record with both bounds set but any derived
field still NULL is recomputed from its persisted fields and written
back; a record that is already complete is left alone, so a second pass
performs no writes. The pass never raises: a record that cannot be
repaired is logged and skipped while the rest of the batch proceeds.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from timekeeper.models.attendance import AttendanceRecord
from timekeeper.services.flags import FlagPolicy
from timekeeper.services.ledger import BreakLedger
from timekeeper.services.stores import LeaveApprovalLookup, RecordStore
from timekeeper.services.worktime import worked_seconds

logger = logging.getLogger(__name__)


async def recompute(
    record: AttendanceRecord,
    leave: LeaveApprovalLookup,
    policy: FlagPolicy,
    *,
    as_of: datetime | None = None,
) -> None:
    """Set worked seconds and flags on ``record`` in place (not persisted)."""
    ledger = BreakLedger.from_json(record.breaks)
    worked = worked_seconds(record.check_in, record.check_out, ledger.closed(), as_of=as_of)
    has_half_day = await leave.has_approved_half_day(record.user_id, record.date)
    flags = policy.derive(worked, has_half_day)
    record.total_worked_seconds = worked
    record.low_time_flag = flags.low_time
    record.extra_time_flag = flags.extra_time


def needs_repair(record: AttendanceRecord) -> bool:
    if record.check_in is None or record.check_out is None:
        return False
    return (
        record.low_time_flag is None
        or record.extra_time_flag is None
        or record.total_worked_seconds is None
    )


class Reconciler:
    def __init__(
        self,
        store: RecordStore,
        leave: LeaveApprovalLookup,
        policy: FlagPolicy,
    ) -> None:
        self._store = store
        self._leave = leave
        self._policy = policy
        self.repaired = 0

    async def reconcile(self, records: Sequence[AttendanceRecord]) -> list[AttendanceRecord]:
        """Repair stale records in ``records``; returns them in the same order."""
        records = list(records)
        for record in records:
            if not needs_repair(record):
                continue
            expected = record.version
            key = (record.id, record.user_id, record.date)
            try:
                await recompute(record, self._leave, self._policy)
                await self._store.update(record, expected)
            except Exception:
                logger.error(
                    "Reconcile failed for attendance record %s (user %s, %s)",
                    *key,
                    exc_info=True,
                )
                try:
                    await self._store.rollback(records)
                except Exception:
                    logger.error("Could not reload batch after reconcile failure", exc_info=True)
                    return records
                continue
            self.repaired += 1
            logger.info(
                "Reconciled attendance record %s (user %s, %s): %ss low=%s extra=%s",
                record.id,
                record.user_id,
                record.date,
                record.total_worked_seconds,
                record.low_time_flag,
                record.extra_time_flag,
            )
        return records
