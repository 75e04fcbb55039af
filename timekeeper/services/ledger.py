"""
Break ledger — the ordered break intervals of one day's session.

The ledger is an immutable value: ``start``, ``end`` and ``synthetic``
return a new ledger and never touch the one they were called on. The
record stores ``ledger.to_json()``; because that is always a fresh list,
assigning it marks the row dirty and the record version is bumped on
write (see ``RecordStore.update``).

Invariants held by every ledger produced here:

* at most one break has ``end is None``;
* at most one *closed* break has type ``Standard``;
* ``Extra`` breaks carry a non-empty reason;
* ``duration_seconds`` is set exactly when ``end`` is set, and is >= 0.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, field_validator

from timekeeper.core.exceptions import ConflictError, InvalidStateError, ValidationError
from timekeeper.services.clock import ensure_utc

STANDARD_TAKEN_MESSAGE = (
    "Standard break already taken today. Please use Extra Break for additional breaks."
)

# Upper bound for an admin-entered break: one whole day.
MAX_BREAK_MINUTES = 24 * 60


class BreakType(str, Enum):
    STANDARD = "Standard"
    EXTRA = "Extra"


class BreakEntry(BaseModel):
    start: datetime
    end: datetime | None = None
    type: BreakType = BreakType.STANDARD
    reason: str | None = None
    duration_seconds: int | None = None

    model_config = {"frozen": True}

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @property
    def is_open(self) -> bool:
        return self.end is None


class BreakLedger:
    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[BreakEntry] = ()) -> None:
        self._entries: tuple[BreakEntry, ...] = tuple(entries)

    # ── Serialisation ───────────────────────────────────────────────
    @classmethod
    def from_json(cls, raw: list[dict[str, Any]] | None) -> "BreakLedger":
        return cls(BreakEntry.model_validate(item) for item in (raw or []))

    def to_json(self) -> list[dict[str, Any]]:
        return [e.model_dump(mode="json", exclude_none=True) for e in self._entries]

    # ── Queries ─────────────────────────────────────────────────────
    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BreakLedger) and self._entries == other._entries

    def open_break(self) -> BreakEntry | None:
        return next((e for e in self._entries if e.is_open), None)

    def closed(self) -> list[BreakEntry]:
        return [e for e in self._entries if not e.is_open]

    def has_closed_standard(self) -> bool:
        return any(e.type is BreakType.STANDARD for e in self.closed())

    # ── Transitions ─────────────────────────────────────────────────
    def start(
        self,
        now: datetime,
        break_type: BreakType | str = BreakType.STANDARD,
        reason: str | None = None,
    ) -> "BreakLedger":
        """Append an open break."""
        try:
            break_type = BreakType(break_type)
        except ValueError:
            raise ValidationError(
                f"Break type must be one of: {', '.join(t.value for t in BreakType)}"
            ) from None

        if self.open_break() is not None:
            raise ConflictError("Break already in progress")

        if break_type is BreakType.STANDARD and self.has_closed_standard():
            raise ConflictError(STANDARD_TAKEN_MESSAGE)

        if break_type is BreakType.EXTRA:
            reason = (reason or "").strip()
            if not reason:
                raise ValidationError("Reason is required for extra breaks")
        else:
            reason = None

        entry = BreakEntry(start=now, type=break_type, reason=reason)
        return BreakLedger((*self._entries, entry))

    def end(self, now: datetime) -> "BreakLedger":
        """Close the open break. Duration is clamped at zero for clock skew."""
        current = self.open_break()
        if current is None:
            raise InvalidStateError("No active break found")

        now = ensure_utc(now)
        duration = max(0, int((now - current.start).total_seconds()))
        closed = current.model_copy(update={"end": now, "duration_seconds": duration})
        return BreakLedger(closed if e is current else e for e in self._entries)

    @classmethod
    def synthetic(cls, check_in: datetime, minutes: int) -> "BreakLedger":
        """Ledger replaced wholesale by one closed Standard break.

        The break starts one second after ``check_in`` and lasts ``minutes``.
        Any breaks previously recorded for the day are discarded.
        """
        if minutes < 0:
            raise ValidationError("Break duration must not be negative")
        if minutes > MAX_BREAK_MINUTES:
            raise ValidationError(f"Break duration must not exceed {MAX_BREAK_MINUTES} minutes")
        start = ensure_utc(check_in) + timedelta(seconds=1)
        seconds = int(minutes) * 60
        entry = BreakEntry(
            start=start,
            end=start + timedelta(seconds=seconds),
            type=BreakType.STANDARD,
            duration_seconds=seconds,
        )
        return cls((entry,))
