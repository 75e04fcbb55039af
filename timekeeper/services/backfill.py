"""
Admin backfill — create or correct a day's record from free-form times.

Administrators type times as ``"9:00 AM"``, ``"09:00 PM"`` or ``"18:30"``.
``parse_clock_time`` is the single parser for all of them and returns a
tagged result instead of raising, so callers decide how to report bad
input. Create and update share ``_apply``; the only difference is whether
the record is inserted or written back at its expected version.

Break policy: when ``break_duration_minutes`` is supplied the whole break
ledger is *replaced* by one synthetic Standard break starting one second
after check-in. Breaks recorded by the employee that day are discarded.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import NamedTuple

from timekeeper.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from timekeeper.models.attendance import AttendanceRecord
from timekeeper.services.attendance import validate_day
from timekeeper.services.audit import Actor, AuditSink, snapshot
from timekeeper.services.clock import Clock, ensure_utc, parse_day
from timekeeper.services.flags import FlagPolicy
from timekeeper.services.ledger import MAX_BREAK_MINUTES, BreakLedger
from timekeeper.services.reconcile import recompute
from timekeeper.services.stores import LeaveApprovalLookup, RecordStore, UserDirectory

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?$")


class ParsedTime(NamedTuple):
    hours: int
    minutes: int


class InvalidTime(NamedTuple):
    reason: str


def parse_clock_time(text: str) -> ParsedTime | InvalidTime:
    """Parse 12-hour (``9:00 AM``) or 24-hour (``21:00``) wall-clock text."""
    match = _TIME_RE.match((text or "").strip())
    if match is None:
        return InvalidTime(f"Unrecognised time '{text}', expected HH:MM or HH:MM AM/PM")

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").upper()

    if minutes > 59:
        return InvalidTime(f"Minutes out of range in '{text}'")

    if period:
        if not 1 <= hours <= 12:
            return InvalidTime(f"Hour out of range for 12-hour time '{text}'")
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
    elif hours > 23:
        return InvalidTime(f"Hour out of range in '{text}'")

    return ParsedTime(hours, minutes)


def combine(day: date, parsed: ParsedTime, tz: timezone) -> datetime:
    """Wall-clock time on ``day`` in ``tz``, as a UTC instant."""
    local = datetime(day.year, day.month, day.day, parsed.hours, parsed.minutes, tzinfo=tz)
    return local.astimezone(timezone.utc)


class UpsertResult(NamedTuple):
    record: AttendanceRecord
    created: bool


class AdminBackfill:
    def __init__(
        self,
        store: RecordStore,
        leave: LeaveApprovalLookup,
        audit: AuditSink,
        clock: Clock,
        users: UserDirectory,
        policy: FlagPolicy | None = None,
    ) -> None:
        self._store = store
        self._leave = leave
        self._audit = audit
        self._clock = clock
        self._users = users
        self._policy = policy or FlagPolicy.from_settings()

    async def upsert(
        self,
        actor: Actor,
        user_id: int,
        day: str,
        check_in: str | None = None,
        check_out: str | None = None,
        break_duration_minutes: int | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> UpsertResult:
        """Create the (user, day) record if absent, else edit it in place."""
        self._require_admin(actor)
        validate_day(day)
        if not await self._users.exists(user_id):
            raise NotFoundError(f"User {user_id} not found")

        record = await self._store.get(user_id, day)
        if record is None:
            record = await self._create(
                actor, user_id, day, check_in, check_out, break_duration_minutes, notes
            )
            return UpsertResult(record, True)

        record = await self._update(
            actor, record, check_in, check_out, break_duration_minutes, notes, expected_version
        )
        return UpsertResult(record, False)

    async def update_by_id(
        self,
        actor: Actor,
        record_id: int,
        check_in: str | None = None,
        check_out: str | None = None,
        break_duration_minutes: int | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> AttendanceRecord:
        self._require_admin(actor)
        record = await self._store.get_by_id(record_id)
        if record is None:
            raise NotFoundError("Attendance record not found")
        return await self._update(
            actor, record, check_in, check_out, break_duration_minutes, notes, expected_version
        )

    # ── Paths ───────────────────────────────────────────────────────
    async def _create(
        self,
        actor: Actor,
        user_id: int,
        day: str,
        check_in: str | None,
        check_out: str | None,
        break_duration_minutes: int | None,
        notes: str | None,
    ) -> AttendanceRecord:
        record = AttendanceRecord(
            user_id=user_id,
            date=day,
            breaks=[],
            total_worked_seconds=0,
            low_time_flag=False,
            extra_time_flag=False,
        )
        await self._apply(record, check_in, check_out, break_duration_minutes, notes)
        record = await self._store.create(record)

        logger.info("Admin %s created attendance for user %s on %s", actor.id, user_id, day)
        await self._record_audit(
            actor, "CREATE_ATTENDANCE", record, f"Created attendance record for {day}", None
        )
        return record

    async def _update(
        self,
        actor: Actor,
        record: AttendanceRecord,
        check_in: str | None,
        check_out: str | None,
        break_duration_minutes: int | None,
        notes: str | None,
        expected_version: int | None,
    ) -> AttendanceRecord:
        before = snapshot(record)
        expected = record.version if expected_version is None else expected_version

        try:
            await self._apply(record, check_in, check_out, break_duration_minutes, notes)
        except ValidationError:
            await self._store.rollback()
            raise
        record = await self._store.update(record, expected)

        logger.info(
            "Admin %s updated attendance %s (user %s, %s)",
            actor.id,
            record.id,
            record.user_id,
            record.date,
        )
        await self._record_audit(
            actor,
            "UPDATE_ATTENDANCE",
            record,
            f"Modified attendance record for {record.date}",
            before,
        )
        return record

    async def _apply(
        self,
        record: AttendanceRecord,
        check_in: str | None,
        check_out: str | None,
        break_duration_minutes: int | None,
        notes: str | None,
    ) -> None:
        day = parse_day(record.date)

        if check_in:
            record.check_in = self._instant(day, check_in, "check_in")
        if check_out:
            record.check_out = self._instant(day, check_out, "check_out")
        if notes is not None:
            record.notes = notes

        start = ensure_utc(record.check_in)
        end = ensure_utc(record.check_out)
        if end is not None and start is None:
            raise ValidationError("Check-out requires a check-in time")
        if start is not None and end is not None and end < start:
            raise ValidationError("Check-out must not be before check-in")

        if break_duration_minutes is not None:
            if break_duration_minutes < 0:
                raise ValidationError("Break duration must not be negative")
            if break_duration_minutes > MAX_BREAK_MINUTES:
                raise ValidationError(f"Break duration must not exceed {MAX_BREAK_MINUTES} minutes")
            anchor = start or self._clock.now()
            record.breaks = BreakLedger.synthetic(anchor, break_duration_minutes).to_json()
        elif end is not None and BreakLedger.from_json(record.breaks).open_break() is not None:
            raise ValidationError(
                "Record has a break in progress; supply break_duration_minutes to replace it"
            )

        if start is not None and end is not None:
            # Checked against the final ledger, including one saved before check-out was known.
            closed = BreakLedger.from_json(record.breaks).closed()
            on_break = sum(b.duration_seconds or 0 for b in closed)
            if on_break > (end - start).total_seconds():
                raise ValidationError("Break duration exceeds the check-in/check-out span")
            await recompute(record, self._leave, self._policy)

    def _instant(self, day: date, text: str, field: str) -> datetime:
        parsed = parse_clock_time(text)
        if isinstance(parsed, InvalidTime):
            raise ValidationError(f"{field}: {parsed.reason}")
        return combine(day, parsed, self._clock.tz)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Admin privileges required")

    async def _record_audit(
        self,
        actor: Actor,
        action: str,
        record: AttendanceRecord,
        details: str,
        before: dict | None,
    ) -> None:
        try:
            await self._audit.record(
                actor.id,
                actor.name,
                action,
                "ATTENDANCE",
                str(record.id),
                details,
                before,
                snapshot(record),
            )
        except Exception:
            logger.warning("Audit sink rejected %s for record %s", action, record.id, exc_info=True)
