"""Pydantic schemas for calendar entries and time-off requests."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, field_serializer, field_validator

from yamanager.models.enums import EntryKind
from yamanager.schemas.common import format_date, format_time, parse_date


class CalendarEntryIn(BaseModel):
    """Body of create / edit. ``id`` is required for edits only."""

    id: int | None = None
    kind: EntryKind
    date: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    hours: float | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _kind(cls, v: object) -> object:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v: object) -> dt.date:
        return parse_date(v)


class CalendarEntryRead(BaseModel):
    id: int
    owner_id: int
    kind: str
    date: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    hours: float | None = None
    status: str
    approver_id: int | None = None
    created_at: dt.datetime | None = None
    status_changed_at: dt.datetime | None = None

    model_config = {"from_attributes": True}

    @field_serializer("date")
    def _ser_date(self, v: dt.date) -> str:
        return format_date(v)

    @field_serializer("start_time", "end_time")
    def _ser_time(self, v: dt.time | None) -> str | None:
        return format_time(v)


class DeleteResult(BaseModel):
    """``entry`` is ``None`` when the entry was removed, else the rejected entry."""

    deleted: bool
    entry: CalendarEntryRead | None = None
