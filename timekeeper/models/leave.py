"""
LeaveRequest model — read by the half-day leave lookup only.

The request / approval workflow lives outside this service; rows are
written by that workflow (or by fixtures in tests).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from timekeeper.db.base import Base, utcnow

HALF_DAY_LEAVE = "Half Day Leave"
LEAVE_CATEGORIES = ("Paid Leave", "Unpaid Leave", HALF_DAY_LEAVE, "Extra Time Leave")

APPROVED = "Approved"
LEAVE_STATUSES = ("Pending", APPROVED, "Rejected")


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_user_start", "user_id", "start_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    start_date: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # YYYY-MM-DD
    end_date: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # YYYY-MM-DD
    category: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="Pending")  # type: ignore[assignment]
    reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]
