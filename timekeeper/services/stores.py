"""
Persistence collaborators of the attendance engine.

``RecordStore`` is the single interface the engine persists through. The
SQL implementation leans on the database for both race guards: the
unique ``(user_id, date)`` constraint settles concurrent clock-ins, and the
mapper's ``version_id_col`` turns a lost break-ledger update into a
``ConflictError`` instead of silently overwriting the other writer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import and_, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from timekeeper.core.exceptions import ConflictError
from timekeeper.models.attendance import AttendanceRecord
from timekeeper.models.leave import APPROVED, HALF_DAY_LEAVE, LeaveRequest
from timekeeper.models.user import User

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    async def get(self, user_id: int, day: str) -> AttendanceRecord | None: ...

    async def get_by_id(self, record_id: int) -> AttendanceRecord | None: ...

    async def create(self, record: AttendanceRecord) -> AttendanceRecord: ...

    async def update(self, record: AttendanceRecord, expected_version: int) -> AttendanceRecord: ...

    async def list(
        self,
        *,
        user_id: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[AttendanceRecord]: ...

    async def rollback(self, records: Sequence[AttendanceRecord] = ()) -> None: ...


class LeaveApprovalLookup(Protocol):
    async def has_approved_half_day(self, user_id: int, day: str) -> bool: ...


class UserDirectory(Protocol):
    async def exists(self, user_id: int) -> bool: ...


class SqlRecordStore:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def get(self, user_id: int, day: str) -> AttendanceRecord | None:
        result = await self._db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.user_id == user_id,
                AttendanceRecord.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, record_id: int) -> AttendanceRecord | None:
        return await self._db.get(AttendanceRecord, record_id)

    async def create(self, record: AttendanceRecord) -> AttendanceRecord:
        """Insert a new record; a duplicate (user, day) is a ``ConflictError``."""
        user_id, day = record.user_id, record.date
        self._db.add(record)
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            logger.info("Duplicate attendance record for user %s on %s", user_id, day)
            raise ConflictError("Attendance record already exists for this day") from None
        await self._db.refresh(record)
        return record

    async def update(self, record: AttendanceRecord, expected_version: int) -> AttendanceRecord:
        """Write ``record`` if nobody else has since ``expected_version``."""
        # Rollback expires ``record``; only these locals are safe afterwards.
        record_id, current = record.id, record.version
        if current != expected_version:
            await self._db.rollback()
            raise ConflictError(
                f"Attendance record changed (version {current}, expected {expected_version})"
            )
        try:
            await self._db.commit()
        except StaleDataError:
            await self._db.rollback()
            logger.info("Lost update on attendance record %s (v%s)", record_id, expected_version)
            raise ConflictError("Attendance record was modified concurrently; retry") from None
        except IntegrityError:
            await self._db.rollback()
            raise ConflictError("Attendance record conflicts with an existing record") from None
        await self._db.refresh(record)
        return record

    async def list(
        self,
        *,
        user_id: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[AttendanceRecord]:
        query = select(AttendanceRecord)
        if user_id is not None:
            query = query.where(AttendanceRecord.user_id == user_id)
        if start_date:
            query = query.where(AttendanceRecord.date >= start_date)
        if end_date:
            query = query.where(AttendanceRecord.date <= end_date)
        if newest_first:
            query = query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.id.desc())
        else:
            query = query.order_by(AttendanceRecord.check_in.asc(), AttendanceRecord.id.asc())
        if limit:
            query = query.limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def rollback(self, records: Sequence[AttendanceRecord] = ()) -> None:
        """Roll back and reload ``records`` so they stay readable afterwards."""
        await self._db.rollback()
        for record in records:
            await self._db.refresh(record)


class SqlLeaveApprovalLookup:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def has_approved_half_day(self, user_id: int, day: str) -> bool:
        # Callers ask mid-edit; flushing here would bump the version early.
        with self._db.no_autoflush:
            result = await self._db.execute(
                select(
                    exists().where(
                        and_(
                            LeaveRequest.user_id == user_id,
                            LeaveRequest.category == HALF_DAY_LEAVE,
                            LeaveRequest.status == APPROVED,
                            LeaveRequest.start_date <= day,
                            LeaveRequest.end_date >= day,
                        )
                    )
                )
            )
        return bool(result.scalar())


class SqlUserDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def exists(self, user_id: int) -> bool:
        result = await self._db.execute(select(exists().where(User.id == user_id)))
        return bool(result.scalar())
