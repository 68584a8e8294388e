"""Shared wire formats: ``yyyy/MM/dd`` dates, ``HH:MM`` times, status filters."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel

from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import Status

DATE_FORMAT = "%Y/%m/%d"
TIME_FORMAT = "%H:%M"


def parse_date(value: object) -> date:
    """Parse ``yyyy/MM/dd``; ``date`` instances pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError:
            pass
    raise ValueError(f"date must be formatted yyyy/MM/dd, got {value!r}")


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: time | None) -> str | None:
    return value.strftime(TIME_FORMAT) if value is not None else None


def query_date(raw: str | None) -> date | None:
    """Query-string date; malformed input is an ``INVALID_REQUEST``."""
    if raw is None or not raw.strip():
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise DomainError(ErrorCode.INVALID_REQUEST, str(exc)) from exc


def query_status(raw: str | None) -> Status | None:
    try:
        return Status.parse(raw)
    except ValueError as exc:
        raise DomainError(ErrorCode.INVALID_REQUEST, str(exc)) from exc


class ImportSummary(BaseModel):
    created: int
    skipped: int


class HealthResponse(BaseModel):
    status: str
    database: str
    redis: str
    version: str
