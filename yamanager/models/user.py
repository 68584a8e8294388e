"""
User & UserPolicy models — identity, role, account status and balances config.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Integer,
                        Interval, String)

from yamanager.db.base import Base


class User(Base):
    __tablename__ = "user"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    external_subject: str = Column(String(255), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), nullable=False, index=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="EMPLOYEE",
        server_default="EMPLOYEE",
    )  # EMPLOYEE | MANAGER | ADMIN
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )  # PENDING | ACCEPTED | REJECTED
    supervisor_id: int | None = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class UserPolicy(Base):
    """Per-user balances configuration, snapshotted from role defaults."""

    __tablename__ = "user_policy"

    user_id: int = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)  # type: ignore[assignment]
    vacation_days_total: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    overtime_hours_taken_budget: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    notification_lead_time: timedelta = Column(Interval, nullable=False, default=timedelta(0))  # type: ignore[assignment]
    # False while the policy is still the registration-time snapshot
    finalized: bool = Column(Boolean, nullable=False, default=False, server_default="false")  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
