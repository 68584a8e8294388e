"""
Balance ledger — pure arithmetic over a policy and calendar entries.

All sums use :class:`fractions.Fraction` so a balance that should land on
exactly zero never drifts below it. Windows are rounded to half-hour
granularity with round-half-to-even before being converted to day fractions.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from fractions import Fraction
from typing import Protocol

from yamanager.core.config import settings
from yamanager.models.enums import LIVE_STATUSES, EntryKind, Status

_MINUTES_PER_SLOT = 30


class LedgerEntry(Protocol):
    kind: str
    status: str
    date: date
    start_time: time | None
    end_time: time | None
    hours: float | None


class LedgerPolicy(Protocol):
    vacation_days_total: float
    overtime_hours_taken_budget: float


@dataclass(frozen=True)
class OvertimePosition:
    taken: Fraction
    budget: Fraction

    @property
    def remaining(self) -> Fraction:
        return self.budget - self.taken


def to_fraction(value: float | int | None) -> Fraction:
    if value is None:
        return Fraction(0)
    # str() keeps 0.1 as 1/10 instead of its binary expansion
    return Fraction(str(value))


def working_day_hours() -> Fraction:
    return to_fraction(settings.WORKING_DAY_HOURS)


def window_hours(start: time, end: time) -> Fraction:
    """Length of a same-day window in hours, rounded to the half hour (half-even)."""
    minutes = (
        datetime.combine(date.min, end) - datetime.combine(date.min, start)
    ).total_seconds() / 60
    slots = round(Fraction(str(minutes)) / _MINUTES_PER_SLOT)
    return Fraction(slots, 2)


def is_whole_day(entry: LedgerEntry) -> bool:
    """True when a VACATION covers the full working day."""
    if entry.start_time is None or entry.end_time is None:
        return True
    return window_hours(entry.start_time, entry.end_time) >= working_day_hours()


def day_fraction(entry: LedgerEntry) -> Fraction:
    if entry.start_time is None or entry.end_time is None:
        return Fraction(1)
    return min(Fraction(1), window_hours(entry.start_time, entry.end_time) / working_day_hours())


def _is_live(entry: LedgerEntry) -> bool:
    return entry.status in {s.value for s in LIVE_STATUSES}


def vacation_used(entries: Iterable[LedgerEntry], as_of: date | None = None) -> Fraction:
    """Days reserved or consumed by live VACATION entries dated on/before ``as_of``."""
    return sum(
        (
            day_fraction(e)
            for e in entries
            if e.kind == EntryKind.VACATION.value
            and _is_live(e)
            and (as_of is None or e.date <= as_of)
        ),
        Fraction(0),
    )


def remaining_vacation(
    policy: LedgerPolicy, entries: Iterable[LedgerEntry], as_of: date | None = None
) -> Fraction:
    return to_fraction(policy.vacation_days_total) - vacation_used(entries, as_of)


def overtime_taken(entries: Iterable[LedgerEntry]) -> Fraction:
    return sum(
        (
            to_fraction(e.hours)
            for e in entries
            if e.kind == EntryKind.OVERTIME.value and e.status == Status.ACCEPTED.value
        ),
        Fraction(0),
    )


def overtime_reserved(entries: Iterable[LedgerEntry]) -> Fraction:
    """Hours of PENDING and ACCEPTED overtime."""
    return sum(
        (
            to_fraction(e.hours)
            for e in entries
            if e.kind == EntryKind.OVERTIME.value and _is_live(e)
        ),
        Fraction(0),
    )


def overtime_position(policy: LedgerPolicy, entries: Iterable[LedgerEntry]) -> OvertimePosition:
    return OvertimePosition(
        taken=overtime_taken(entries),
        budget=to_fraction(policy.overtime_hours_taken_budget),
    )
