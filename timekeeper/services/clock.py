"""Injectable clock and calendar-day helpers."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Protocol

from timekeeper.core.config import settings

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)


def parse_offset(offset: str) -> timezone:
    """``"+05:30"`` → ``timezone(timedelta(hours=5, minutes=30))``."""
    sign = 1 if offset[0] == "+" else -1
    hours, _, minutes = offset[1:].partition(":")
    return timezone(sign * timedelta(hours=int(hours), minutes=int(minutes or 0)))


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` key, raising ``ValueError`` on anything else."""
    if not isinstance(value, str) or not _DAY_RE.match(value):
        raise ValueError(f"not a YYYY-MM-DD day key: {value!r}")
    return date.fromisoformat(value)


class Clock(Protocol):
    tz: timezone

    def now(self) -> datetime: ...

    def today(self) -> str: ...


class SystemClock:
    def __init__(self, tz: timezone | None = None) -> None:
        self.tz = tz or parse_offset(settings.TIMEZONE_OFFSET)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> str:
        return self.now().astimezone(self.tz).strftime("%Y-%m-%d")


class FixedClock(SystemClock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, at: datetime, tz: timezone | None = None) -> None:
        super().__init__(tz)
        self._at = ensure_utc(at)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = ensure_utc(at)

    def advance(self, **delta: float) -> datetime:
        self._at = self._at + timedelta(**delta)
        return self._at
