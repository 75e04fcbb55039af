"""
Audit sink — best-effort trail of who changed which record.

Entries are written in a session of their own so that a failed audit
write can never roll back (or be rolled back with) the state transition
it describes. Failures are logged and swallowed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timekeeper.models.attendance import AttendanceRecord
from timekeeper.models.audit import AuditLog
from timekeeper.schemas.attendance import AttendanceRead

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Already-authenticated identity a change is attributed to."""

    id: int
    name: str
    is_admin: bool = False


class AuditSink(Protocol):
    async def record(
        self,
        actor_id: int,
        actor_name: str,
        action: str,
        target_type: str,
        target_id: str,
        details: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None: ...


def snapshot(record: AttendanceRecord | None) -> dict[str, Any] | None:
    """JSON-safe view of a record for before/after diffs."""
    if record is None:
        return None
    return AttendanceRead.model_validate(record).model_dump(mode="json")


class SqlAuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        actor_id: int,
        actor_name: str,
        action: str,
        target_type: str,
        target_id: str,
        details: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditLog(
                        actor_id=actor_id,
                        actor_name=actor_name,
                        action=action,
                        target_type=target_type,
                        target_id=target_id,
                        details=details[:500],
                        before_data=json.dumps(before) if before is not None else None,
                        after_data=json.dumps(after) if after is not None else None,
                    )
                )
                await session.commit()
        except Exception:
            logger.warning(
                "Audit write failed: %s %s/%s by %s",
                action,
                target_type,
                target_id,
                actor_id,
                exc_info=True,
            )
