"""
Flag policy — low-time / extra-time indicators for a worked duration.

Thresholds are configuration, not business rules baked in here:
``FULL_DAY_SECONDS``, ``HALF_DAY_SECONDS`` and ``OVERTIME_MARGIN_SECONDS``.
With ``EXCLUSIVE_FLAGS`` (the default) a day is never both short and
long: extra time is only considered once the day is not short.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from timekeeper.core.config import settings


class Flags(NamedTuple):
    low_time: bool
    extra_time: bool


@dataclass(frozen=True)
class FlagPolicy:
    full_day_seconds: int
    half_day_seconds: int
    overtime_margin_seconds: int = 0
    exclusive: bool = True

    @classmethod
    def from_settings(cls) -> "FlagPolicy":
        return cls(
            full_day_seconds=settings.FULL_DAY_SECONDS,
            half_day_seconds=settings.HALF_DAY_SECONDS,
            overtime_margin_seconds=settings.OVERTIME_MARGIN_SECONDS,
            exclusive=settings.EXCLUSIVE_FLAGS,
        )

    def expected_seconds(self, has_half_day: bool) -> int:
        return self.half_day_seconds if has_half_day else self.full_day_seconds

    def derive(self, worked: int, has_half_day: bool) -> Flags:
        low_time = worked < self.expected_seconds(has_half_day)
        if low_time and self.exclusive:
            return Flags(low_time=True, extra_time=False)
        extra_time = worked > self.full_day_seconds + self.overtime_margin_seconds
        return Flags(low_time=low_time, extra_time=extra_time)
