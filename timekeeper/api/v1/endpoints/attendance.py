"""
Attendance endpoints — clock-in/out, breaks, history and admin backfill.

- Session transitions act on the caller's own record for today.
- Listing, backfill and reconcile endpoints require admin / HR role.
- Read endpoints reconcile stale records before returning them, which
  may write corrected derived fields.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, Query, Response, status

from timekeeper.api.v1.deps import (
    actor_for,
    get_admin_backfill,
    get_attendance_service,
    get_current_active_user,
    require_admin,
)
from timekeeper.models.attendance import AttendanceRecord
from timekeeper.models.user import User
from timekeeper.schemas.attendance import (
    AdminAttendanceUpdate,
    AdminAttendanceUpsert,
    AttendanceRead,
    BreakStartRequest,
    ClockInRequest,
    ReconcileResponse,
)
from timekeeper.services.attendance import AttendanceService
from timekeeper.services.backfill import AdminBackfill

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


# ── Employee session ────────────────────────────────────────────────
@router.post("/clock-in", response_model=AttendanceRead, status_code=201)
async def clock_in(
    body: ClockInRequest | None = Body(default=None),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecord:
    location = body.location if body else None
    return await service.clock_in(actor_for(user), location=location)


@router.post("/clock-out", response_model=AttendanceRead)
async def clock_out(
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecord:
    return await service.clock_out(actor_for(user))


@router.post("/break/start", response_model=AttendanceRead)
async def break_start(
    body: BreakStartRequest | None = Body(default=None),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecord:
    """Start a Standard (once a day) or Extra (reason required) break."""
    body = body or BreakStartRequest()
    return await service.start_break(actor_for(user), body.type, body.reason)


@router.post("/break/end", response_model=AttendanceRead)
async def break_end(
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecord:
    return await service.end_break(actor_for(user))


@router.get("/today", response_model=AttendanceRead | None)
async def today(
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> AttendanceRecord | None:
    return await service.get_today(user.id)


@router.get("/history", response_model=list[AttendanceRead])
async def history(
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    service: AttendanceService = Depends(get_attendance_service),
    user: User = Depends(get_current_active_user),
) -> list[AttendanceRecord]:
    """The caller's records, newest first."""
    return await service.get_history(user.id, start_date, end_date)


# ── Admin views ─────────────────────────────────────────────────────
@router.get("/all", response_model=list[AttendanceRead])
async def list_all(
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    user_id: int | None = Query(default=None),
    service: AttendanceService = Depends(get_attendance_service),
    _admin: User = Depends(require_admin),
) -> list[AttendanceRecord]:
    return await service.list_all(start_date, end_date, user_id)


@router.get("/today/all", response_model=list[AttendanceRead])
async def list_today_all(
    service: AttendanceService = Depends(get_attendance_service),
    _admin: User = Depends(require_admin),
) -> list[AttendanceRecord]:
    return await service.list_today_all()


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    user_id: int | None = Query(default=None),
    service: AttendanceService = Depends(get_attendance_service),
    admin: User = Depends(require_admin),
) -> ReconcileResponse:
    """Recompute missing worked time / flags for a range. Writes repaired rows."""
    visited, repaired = await service.reconcile_range(start_date, end_date, user_id)
    logger.info("Reconcile by %s: %d visited, %d repaired", admin.id, visited, repaired)
    return ReconcileResponse(visited=visited, repaired=repaired)


# ── Admin backfill ──────────────────────────────────────────────────
@router.post("/admin", response_model=AttendanceRead)
async def admin_upsert(
    body: AdminAttendanceUpsert,
    response: Response,
    backfill: AdminBackfill = Depends(get_admin_backfill),
    admin: User = Depends(require_admin),
) -> AttendanceRecord:
    """Create the (user, date) record or correct it in place."""
    result = await backfill.upsert(
        actor_for(admin),
        body.user_id,
        body.date,
        check_in=body.check_in,
        check_out=body.check_out,
        break_duration_minutes=body.break_duration_minutes,
        notes=body.notes,
        expected_version=body.version,
    )
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return result.record


@router.put("/admin/{record_id}", response_model=AttendanceRead)
async def admin_update(
    record_id: int,
    body: AdminAttendanceUpdate,
    backfill: AdminBackfill = Depends(get_admin_backfill),
    admin: User = Depends(require_admin),
) -> AttendanceRecord:
    return await backfill.update_by_id(
        actor_for(admin),
        record_id,
        check_in=body.check_in,
        check_out=body.check_out,
        break_duration_minutes=body.break_duration_minutes,
        notes=body.notes,
        expected_version=body.version,
    )
