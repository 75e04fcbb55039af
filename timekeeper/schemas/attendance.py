"""Pydantic schemas for attendance records, breaks and admin backfill."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field, field_validator

from timekeeper.services.clock import ensure_utc, parse_day
from timekeeper.services.ledger import MAX_BREAK_MINUTES, BreakEntry, BreakType


class SessionState(str, Enum):
    NOT_STARTED = "NotStarted"
    CHECKED_IN = "CheckedIn"
    ON_BREAK = "OnBreak"
    CHECKED_OUT = "CheckedOut"


def _check_day(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    try:
        parse_day(v)
    except ValueError:
        raise ValueError("Date must be a valid YYYY-MM-DD day") from None
    return v


# ── Employee requests ──────────────────────────────────────────────
class ClockInRequest(BaseModel):
    location: str | None = Field(default=None, max_length=200)


class BreakStartRequest(BaseModel):
    type: BreakType = BreakType.STANDARD
    reason: str | None = Field(default=None, max_length=500)


# ── Records ────────────────────────────────────────────────────────
class AttendanceRead(BaseModel):
    id: int
    user_id: int
    date: str
    check_in: datetime | None
    check_out: datetime | None
    location: str | None = None
    breaks: list[BreakEntry] = Field(default_factory=list)
    total_worked_seconds: int | None = None
    low_time_flag: bool | None = None
    extra_time_flag: bool | None = None
    notes: str | None = None
    version: int

    model_config = {"from_attributes": True}

    @field_validator("check_in", "check_out")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> SessionState:
        if self.check_in is None:
            return SessionState.NOT_STARTED
        if self.check_out is not None:
            return SessionState.CHECKED_OUT
        if any(b.is_open for b in self.breaks):
            return SessionState.ON_BREAK
        return SessionState.CHECKED_IN


# ── Admin backfill ─────────────────────────────────────────────────
class AdminAttendanceBase(BaseModel):
    check_in: str | None = Field(default=None, max_length=20)
    check_out: str | None = Field(default=None, max_length=20)
    break_duration_minutes: int | None = Field(default=None, ge=0, le=MAX_BREAK_MINUTES)
    notes: str | None = Field(default=None, max_length=2000)
    version: int | None = None  # optimistic-concurrency token from a prior read


class AdminAttendanceUpsert(AdminAttendanceBase):
    user_id: int
    date: str

    @field_validator("date")
    @classmethod
    def _date(cls, v: str) -> str:
        return _check_day(v)  # type: ignore[return-value]


class AdminAttendanceUpdate(AdminAttendanceBase):
    pass


class ReconcileResponse(BaseModel):
    visited: int
    repaired: int

