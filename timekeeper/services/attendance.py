"""
Clock session state machine.

One ``AttendanceRecord`` per (user, calendar day) moves through

    NotStarted → CheckedIn ⇄ OnBreak → CheckedOut

Every transition reads the record, applies the change in memory and
writes it back with the version it was read at, so two concurrent
transitions on the same record cannot both win. Derived values are
computed by ``worked_seconds`` and ``FlagPolicy``; read paths pass their
results through the ``Reconciler`` and may therefore write.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from timekeeper.core.config import settings
from timekeeper.core.exceptions import ConflictError, InvalidStateError, ValidationError
from timekeeper.models.attendance import AttendanceRecord
from timekeeper.schemas.attendance import SessionState
from timekeeper.services.audit import Actor, AuditSink, snapshot
from timekeeper.services.clock import Clock, parse_day
from timekeeper.services.flags import FlagPolicy
from timekeeper.services.ledger import BreakLedger, BreakType
from timekeeper.services.reconcile import Reconciler, recompute
from timekeeper.services.stores import LeaveApprovalLookup, RecordStore

logger = logging.getLogger(__name__)


def session_state(record: AttendanceRecord | None) -> SessionState:
    if record is None or record.check_in is None:
        return SessionState.NOT_STARTED
    if record.check_out is not None:
        return SessionState.CHECKED_OUT
    if BreakLedger.from_json(record.breaks).open_break() is not None:
        return SessionState.ON_BREAK
    return SessionState.CHECKED_IN


def validate_day(day: str) -> str:
    try:
        parse_day(day)
    except ValueError:
        raise ValidationError(f"Invalid date '{day}', expected YYYY-MM-DD") from None
    return day


def validate_range(start_date: str | None, end_date: str | None) -> None:
    if start_date:
        validate_day(start_date)
    if end_date:
        validate_day(end_date)
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")


class AttendanceService:
    def __init__(
        self,
        store: RecordStore,
        leave: LeaveApprovalLookup,
        audit: AuditSink,
        clock: Clock,
        policy: FlagPolicy | None = None,
    ) -> None:
        self._store = store
        self._leave = leave
        self._audit = audit
        self._clock = clock
        self._policy = policy or FlagPolicy.from_settings()

    # ── Transitions ─────────────────────────────────────────────────
    async def clock_in(
        self,
        actor: Actor,
        day: str | None = None,
        location: str | None = None,
    ) -> AttendanceRecord:
        day = validate_day(day) if day else self._clock.today()

        if await self._store.get(actor.id, day) is not None:
            raise ConflictError("Already clocked in today")

        record = AttendanceRecord(
            user_id=actor.id,
            date=day,
            check_in=self._clock.now(),
            location=location or settings.DEFAULT_LOCATION,
            breaks=[],
            total_worked_seconds=0,
            low_time_flag=False,
            extra_time_flag=False,
        )
        # The store's unique (user, day) key settles a concurrent clock-in.
        record = await self._store.create(record)

        logger.info("Clock in: user %s on %s", actor.id, day)
        await self._record_audit(actor, "CLOCK_IN", record, f"Clocked in at {day}")
        return record

    async def clock_out(self, actor: Actor, day: str | None = None) -> AttendanceRecord:
        day = validate_day(day) if day else self._clock.today()
        record = await self._store.get(actor.id, day)

        if record is None or record.check_in is None:
            raise InvalidStateError("No check-in record found for today")
        if record.check_out is not None:
            raise ConflictError("Already clocked out today")
        if BreakLedger.from_json(record.breaks).open_break() is not None:
            raise ConflictError("Please end your break before clocking out")

        expected = record.version
        now = self._clock.now()
        record.check_out = now
        await recompute(record, self._leave, self._policy, as_of=now)
        record = await self._store.update(record, expected)

        logger.info(
            "Clock out: user %s on %s, worked %ss (low=%s extra=%s)",
            actor.id,
            day,
            record.total_worked_seconds,
            record.low_time_flag,
            record.extra_time_flag,
        )
        await self._record_audit(actor, "CLOCK_OUT", record, f"Clocked out at {day}")
        return record

    async def start_break(
        self,
        actor: Actor,
        break_type: BreakType | str = BreakType.STANDARD,
        reason: str | None = None,
        day: str | None = None,
    ) -> AttendanceRecord:
        day = validate_day(day) if day else self._clock.today()
        record = await self._store.get(actor.id, day)

        if session_state(record) not in (SessionState.CHECKED_IN, SessionState.ON_BREAK):
            raise InvalidStateError("No active attendance record")

        expected = record.version
        ledger = BreakLedger.from_json(record.breaks).start(self._clock.now(), break_type, reason)
        record.breaks = ledger.to_json()
        record = await self._store.update(record, expected)

        logger.info("Break start: user %s on %s (%s)", actor.id, day, BreakType(break_type).value)
        return record

    async def end_break(self, actor: Actor, day: str | None = None) -> AttendanceRecord:
        day = validate_day(day) if day else self._clock.today()
        record = await self._store.get(actor.id, day)
        if record is None:
            raise InvalidStateError("No attendance record found")

        expected = record.version
        ledger = BreakLedger.from_json(record.breaks).end(self._clock.now())
        record.breaks = ledger.to_json()
        record = await self._store.update(record, expected)

        logger.info("Break end: user %s on %s", actor.id, day)
        return record

    # ── Reads (reconciling) ─────────────────────────────────────────
    async def get_today(self, user_id: int) -> AttendanceRecord | None:
        record = await self._store.get(user_id, self._clock.today())
        if record is None:
            return None
        return (await self.reconcile([record]))[0]

    async def get_history(
        self,
        user_id: int,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[AttendanceRecord]:
        validate_range(start_date, end_date)
        records = await self._store.list(
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=settings.HISTORY_LIMIT,
        )
        return await self.reconcile(records)

    async def list_all(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        user_id: int | None = None,
    ) -> list[AttendanceRecord]:
        validate_range(start_date, end_date)
        records = await self._store.list(
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=settings.ADMIN_LIST_LIMIT,
        )
        return await self.reconcile(records)

    async def list_today_all(self) -> list[AttendanceRecord]:
        today = self._clock.today()
        records = await self._store.list(start_date=today, end_date=today, newest_first=False)
        return await self.reconcile(records)

    async def reconcile(self, records: Sequence[AttendanceRecord]) -> list[AttendanceRecord]:
        """Repair stale derived fields. Mutating: writes corrected rows."""
        return await Reconciler(self._store, self._leave, self._policy).reconcile(records)

    async def reconcile_range(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        user_id: int | None = None,
    ) -> tuple[int, int]:
        """Reconcile every record in a range; returns (visited, repaired)."""
        validate_range(start_date, end_date)
        records = await self._store.list(user_id=user_id, start_date=start_date, end_date=end_date)
        reconciler = Reconciler(self._store, self._leave, self._policy)
        await reconciler.reconcile(records)
        return len(records), reconciler.repaired

    # ── Helpers ─────────────────────────────────────────────────────
    async def _record_audit(
        self,
        actor: Actor,
        action: str,
        record: AttendanceRecord,
        details: str,
    ) -> None:
        try:
            await self._audit.record(
                actor.id,
                actor.name,
                action,
                "ATTENDANCE",
                str(record.id),
                details,
                None,
                snapshot(record),
            )
        except Exception:
            logger.warning("Audit sink rejected %s for record %s", action, record.id, exc_info=True)
