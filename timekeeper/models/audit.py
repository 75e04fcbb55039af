"""
AuditLog model — who changed what, with before/after snapshots.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from timekeeper.db.base import Base, utcnow

TARGET_TYPES = ("USER", "ATTENDANCE", "LEAVE", "SYSTEM")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_actor", "actor_id"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    actor_id: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    actor_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    action: str = Column(String(50), nullable=False)  # type: ignore[assignment]
    target_type: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    target_id: str = Column(String(64), nullable=False)  # type: ignore[assignment]
    details: str = Column(String(500), nullable=False)  # type: ignore[assignment]
    before_data: str | None = Column(Text, nullable=True)  # type: ignore[assignment]  # JSON text
    after_data: str | None = Column(Text, nullable=True)  # type: ignore[assignment]  # JSON text
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow, index=True)  # type: ignore[assignment]
