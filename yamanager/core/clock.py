"""
Server civil-time clock.

Calendar days are interpreted in ``SERVER_TIMEZONE``. Services receive the
clock as a callable so tests can pin "now".
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from yamanager.core.config import settings

Clock = Callable[[], datetime]


def server_zone() -> ZoneInfo:
    return ZoneInfo(settings.SERVER_TIMEZONE)


def now() -> datetime:
    """Current aware datetime in the server time zone."""
    return datetime.now(server_zone())


def local_date(moment: datetime) -> date:
    """Calendar day of ``moment`` in the server time zone."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(server_zone()).date()
