"""
CalendarEntry model — vacation days, sick days and overtime blocks.

The partial unique index backs the "one live VACATION / SICK_DAY per owner
and day" rule, so two racing inserts cannot both commit.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (Column, Date, DateTime, Float, ForeignKey, Index,
                        Integer, String, Time, text)

from yamanager.db.base import Base

_LIVE_EXCLUSIVE = text(
    "kind IN ('VACATION', 'SICK_DAY') AND status IN ('PENDING', 'ACCEPTED')"
)


class CalendarEntry(Base):
    __tablename__ = "calendar_entry"
    __table_args__ = (
        Index("ix_calendar_entry_owner_date", "owner_id", "date"),
        Index(
            "uq_calendar_entry_owner_day_live",
            "owner_id",
            "date",
            unique=True,
            postgresql_where=_LIVE_EXCLUSIVE,
            sqlite_where=_LIVE_EXCLUSIVE,
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    owner_id: int = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    kind: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    # VACATION | SICK_DAY | OVERTIME
    date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    # VACATION only; both NULL means a whole working day
    start_time: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    end_time: time | None = Column(Time, nullable=True)  # type: ignore[assignment]
    # OVERTIME only
    hours: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="PENDING")  # type: ignore[assignment]
    # PENDING | ACCEPTED | REJECTED
    approver_id: int | None = Column(Integer, ForeignKey("user.id"), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    status_changed_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
