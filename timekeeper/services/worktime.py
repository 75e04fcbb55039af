"""Worked-time calculator."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from timekeeper.services.clock import ensure_utc
from timekeeper.services.ledger import BreakEntry


def worked_seconds(
    check_in: datetime,
    check_out: datetime | None,
    breaks: Iterable[BreakEntry],
    *,
    as_of: datetime | None = None,
) -> int:
    """Seconds between check-in and the end instant, minus closed breaks.

    The end instant is ``as_of`` when given (a checkout not yet persisted,
    or "now" for a live session), otherwise ``check_out``. Open breaks are
    ignored. The result is floored at zero and truncated to whole seconds,
    so evaluating before and after persisting the checkout agrees.
    """
    end = as_of if as_of is not None else check_out
    if check_in is None or end is None:
        raise ValueError("worked_seconds needs check_in and a check_out or as_of")

    span = (ensure_utc(end) - ensure_utc(check_in)).total_seconds()
    on_break = sum(b.duration_seconds or 0 for b in breaks if not b.is_open)
    return max(0, int(span) - int(on_break))
