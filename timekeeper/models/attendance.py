"""
AttendanceRecord model — one clock session per (user, calendar day).

``breaks`` holds the break ledger as a JSON list; ``version`` is the
optimistic-concurrency token that SQLAlchemy compares on every UPDATE.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (JSON, Boolean, Column, DateTime, ForeignKey, Index,
                        Integer, String, Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from timekeeper.db.base import Base, utcnow


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
        Index("ix_attendance_date", "date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    date: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # YYYY-MM-DD
    check_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    check_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    location: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    breaks: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    # Derived; NULL on rows written before flags existed.
    total_worked_seconds: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    low_time_flag: bool | None = Column(Boolean, nullable=True)  # type: ignore[assignment]
    extra_time_flag: bool | None = Column(Boolean, nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    user = relationship("User", back_populates="attendance_records", lazy="raise")

    def __repr__(self) -> str:
        return f"<AttendanceRecord user={self.user_id} date={self.date} v{self.version}>"
