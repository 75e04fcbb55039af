"""
Audit log endpoints — read-only view of the attendance audit trail.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.v1.deps import get_db, require_admin
from timekeeper.models.audit import AuditLog
from timekeeper.models.user import User
from timekeeper.schemas.audit import AuditLogRead

router = APIRouter(tags=["audit"])


@router.get("/audit", response_model=list[AuditLogRead])
async def list_audit_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    target_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[AuditLog]:
    """Most recent audit entries first."""
    query = select(AuditLog)
    if target_id:
        query = query.where(AuditLog.target_id == target_id)
    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
