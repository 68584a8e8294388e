"""
DefaultSettings model — one policy template per role.

Rows are seeded at startup from configuration. Changing a row only affects
users whose policy is snapshotted afterwards.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, DateTime, Float, Interval, String

from yamanager.db.base import Base


class DefaultSettings(Base):
    __tablename__ = "default_settings"

    role: str = Column(String(20), primary_key=True)  # type: ignore[assignment]
    vacation_days_total: float = Column(Float, nullable=False)  # type: ignore[assignment]
    overtime_hours_taken_budget: float = Column(Float, nullable=False)  # type: ignore[assignment]
    notification_lead_time: timedelta = Column(Interval, nullable=False)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
