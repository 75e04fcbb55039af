"""
FastAPI dependencies — auth guards, database session and engine wiring.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.core.security import decode_access_token
from timekeeper.db.session import async_session_factory
from timekeeper.models.user import User
from timekeeper.services.attendance import AttendanceService
from timekeeper.services.audit import Actor, AuditSink, SqlAuditSink
from timekeeper.services.backfill import AdminBackfill
from timekeeper.services.clock import Clock, SystemClock
from timekeeper.services.flags import FlagPolicy
from timekeeper.services.stores import SqlLeaveApprovalLookup, SqlRecordStore, SqlUserDirectory

# auto_error=False so we can fall back to the cookie if the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # HttpOnly cookie
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""
    final_token = token
    if not final_token and access_token:
        final_token = access_token.removeprefix("Bearer ").strip()

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None:
        raise credentials_exc

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise credentials_exc from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user account")
    return current_user


async def require_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Only allow admin / HR roles to proceed."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, name=user.display_name, is_admin=user.is_admin)


# ── Attendance engine wiring ────────────────────────────────────────
def get_clock() -> Clock:
    return SystemClock()


def get_audit_sink() -> AuditSink:
    return SqlAuditSink(async_session_factory)


def get_flag_policy() -> FlagPolicy:
    return FlagPolicy.from_settings()


async def get_attendance_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
    policy: FlagPolicy = Depends(get_flag_policy),
) -> AttendanceService:
    return AttendanceService(
        SqlRecordStore(db),
        SqlLeaveApprovalLookup(db),
        audit,
        clock,
        policy,
    )


async def get_admin_backfill(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    audit: AuditSink = Depends(get_audit_sink),
    policy: FlagPolicy = Depends(get_flag_policy),
) -> AdminBackfill:
    return AdminBackfill(
        SqlRecordStore(db),
        SqlLeaveApprovalLookup(db),
        audit,
        clock,
        SqlUserDirectory(db),
        policy,
    )
