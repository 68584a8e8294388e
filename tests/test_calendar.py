"""Tests for the calendar service: create, edit, delete, list."""

from datetime import date, time, timedelta
from fractions import Fraction

import pytest
from sqlalchemy import select

from conftest import fixed_clock, principal
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.calendar_entry import CalendarEntry
from yamanager.models.enums import EntryKind, Status
from yamanager.services.calendar import CalendarService, EntryDraft
from yamanager.services.queries import QueryFacade


def vacation(day: date, start: time | None = None, end: time | None = None) -> EntryDraft:
    return EntryDraft(EntryKind.VACATION, day, start, end)


def overtime(day: date, hours: float) -> EntryDraft:
    return EntryDraft(EntryKind.OVERTIME, day, hours=hours)


async def expect(code: ErrorCode, coro):
    with pytest.raises(DomainError) as exc:
        await coro
    assert exc.value.code is code, exc.value


@pytest.fixture
def service(db_session):
    return CalendarService(db_session, fixed_clock)


# ── Create ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_second_vacation_on_same_day_overlaps(service, team):
    """Owner vacation is PENDING; another on the same day is OVERLAPPING_ENTRY."""
    actor = principal(team["employee"])
    entry = await service.create_entry(actor, actor.id, vacation(date(2025, 6, 10)))
    assert entry.status == "PENDING"
    assert entry.approver_id is None

    await expect(
        ErrorCode.OVERLAPPING_ENTRY,
        service.create_entry(actor, actor.id, vacation(date(2025, 6, 10))),
    )


@pytest.mark.asyncio
async def test_pending_entries_gate_the_balance(service, make_user):
    """Three PENDING days exhaust a 3-day budget before anything is accepted."""
    user = await make_user(vacation_days=3)
    actor = principal(user)
    for day in (1, 2, 3):
        await service.create_entry(actor, actor.id, vacation(date(2025, 7, day)))

    await expect(
        ErrorCode.INSUFFICIENT_BALANCE,
        service.create_entry(actor, actor.id, vacation(date(2025, 7, 4))),
    )


@pytest.mark.asyncio
async def test_half_day_fits_remaining_half(service, make_user):
    user = await make_user(vacation_days=1.5)
    actor = principal(user)
    await service.create_entry(actor, actor.id, vacation(date(2025, 7, 1)))
    entry = await service.create_entry(
        actor, actor.id, vacation(date(2025, 7, 2), time(8, 0), time(12, 0))
    )
    assert entry.start_time == time(8, 0)


@pytest.mark.asyncio
async def test_lead_time_is_enforced_for_owner(service, make_user):
    user = await make_user(lead_time=timedelta(days=7))
    actor = principal(user)
    # FIXED_NOW is 2024-03-13
    await expect(
        ErrorCode.LEAD_TIME_VIOLATED,
        service.create_entry(actor, actor.id, vacation(date(2024, 3, 19))),
    )
    entry = await service.create_entry(actor, actor.id, vacation(date(2024, 3, 20)))
    assert entry.status == "PENDING"


@pytest.mark.asyncio
async def test_sick_day_is_accepted_on_creation(service, team):
    actor = principal(team["employee"])
    entry = await service.create_entry(
        actor, actor.id, EntryDraft(EntryKind.SICK_DAY, date(2024, 3, 13))
    )
    assert entry.status == "ACCEPTED"
    assert entry.approver_id == actor.id

    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, EntryDraft(EntryKind.SICK_DAY, date(2024, 3, 15))),
    )


@pytest.mark.asyncio
async def test_overtime_rules(service, team):
    actor = principal(team["employee"])
    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, overtime(date(2024, 3, 14), 2)),
    )
    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, overtime(date(2024, 3, 12), 25)),
    )
    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, overtime(date(2024, 3, 12), 0)),
    )
    first = await service.create_entry(actor, actor.id, overtime(date(2024, 3, 12), 2))
    second = await service.create_entry(actor, actor.id, overtime(date(2024, 3, 12), 1.5))
    assert first.status == second.status == "PENDING"


@pytest.mark.asyncio
async def test_overtime_budget_counts_reserved_hours(service, make_user):
    user = await make_user(overtime_budget=4)
    actor = principal(user)
    await service.create_entry(actor, actor.id, overtime(date(2024, 3, 11), 3))
    await expect(
        ErrorCode.INSUFFICIENT_BALANCE,
        service.create_entry(actor, actor.id, overtime(date(2024, 3, 12), 1.5)),
    )


@pytest.mark.asyncio
async def test_overtime_and_vacation_coexistence(service, team):
    """Overtime may share a day with a partial vacation, never with a whole day or sickness."""
    actor = principal(team["employee"])
    day = date(2024, 3, 12)
    manager = principal(team["manager"])

    # past vacations are filed on behalf of the owner by the supervisor
    await service.create_entry(manager, actor.id, vacation(day, time(8, 0), time(12, 0)))
    await service.create_entry(actor, actor.id, overtime(day, 2))

    whole = date(2024, 3, 11)
    await service.create_entry(manager, actor.id, vacation(whole))
    await expect(ErrorCode.OVERLAPPING_ENTRY, service.create_entry(actor, actor.id, overtime(whole, 2)))

    sick = date(2024, 3, 13)
    await service.create_entry(actor, actor.id, overtime(sick, 1))
    await expect(
        ErrorCode.OVERLAPPING_ENTRY,
        service.create_entry(actor, actor.id, EntryDraft(EntryKind.SICK_DAY, sick)),
    )


@pytest.mark.asyncio
async def test_vacation_window_validation(service, team):
    actor = principal(team["employee"])
    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, vacation(date(2025, 1, 6), time(12, 0), time(9, 0))),
    )
    await expect(
        ErrorCode.DATE_OUT_OF_RANGE,
        service.create_entry(actor, actor.id, vacation(date(2025, 1, 6), time(12, 0), None)),
    )


@pytest.mark.asyncio
async def test_supervisor_creates_accepted_entry_on_behalf(service, team):
    manager = principal(team["manager"])
    entry = await service.create_entry(manager, team["employee"].id, vacation(date(2025, 2, 3)))
    assert entry.status == "ACCEPTED"
    assert entry.approver_id == manager.id


@pytest.mark.asyncio
async def test_stranger_cannot_create_for_someone_else(service, team, make_user):
    stranger = principal(await make_user())
    await expect(
        ErrorCode.UNAUTHORIZED_ACTOR,
        service.create_entry(stranger, team["employee"].id, vacation(date(2025, 2, 3))),
    )


@pytest.mark.asyncio
async def test_unknown_owner_is_not_found(service, team):
    admin = principal(team["admin"])
    await expect(ErrorCode.NOT_FOUND, service.create_entry(admin, 9999, vacation(date(2025, 2, 3))))


# ── Edit ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_edit_pending_entry_excludes_itself(service, make_user):
    user = await make_user(vacation_days=1)
    actor = principal(user)
    entry = await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))
    edited = await service.update_entry(actor, entry.id, vacation(date(2025, 5, 6)))
    assert edited.id == entry.id
    assert edited.date == date(2025, 5, 6)


@pytest.mark.asyncio
async def test_edit_rules(service, team):
    actor = principal(team["employee"])
    entry = await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))

    await expect(
        ErrorCode.INVALID_REQUEST,
        service.update_entry(actor, entry.id, overtime(date(2024, 3, 1), 1)),
    )
    await expect(
        ErrorCode.UNAUTHORIZED_ACTOR,
        service.update_entry(principal(team["manager"]), entry.id, vacation(date(2025, 5, 7))),
    )

    sick = await service.create_entry(
        actor, actor.id, EntryDraft(EntryKind.SICK_DAY, date(2024, 3, 13))
    )
    await expect(
        ErrorCode.ILLEGAL_STATUS_TRANSITION,
        service.update_entry(actor, sick.id, EntryDraft(EntryKind.SICK_DAY, date(2024, 3, 12))),
    )


# ── Delete ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_owner_deletes_pending_entry(service, db_session, team):
    """Create then delete of a PENDING entry leaves the balance exactly as it was."""
    actor = principal(team["employee"])
    queries = QueryFacade(db_session)
    before = (await queries.full_profile(actor, actor.id)).remaining_vacation

    entry = await service.create_entry(
        actor, actor.id, vacation(date(2025, 5, 5), time(8, 0), time(12, 0))
    )
    assert (await queries.full_profile(actor, actor.id)).remaining_vacation == before - Fraction(1, 2)
    assert await service.delete_entry(actor, entry.id) is None
    assert (await queries.full_profile(actor, actor.id)).remaining_vacation == before

    result = await db_session.execute(select(CalendarEntry).where(CalendarEntry.id == entry.id))
    assert result.scalar_one_or_none() is None
    await expect(ErrorCode.NOT_FOUND, service.delete_entry(actor, entry.id))


@pytest.mark.asyncio
async def test_approver_delete_rejects(service, team):
    actor = principal(team["employee"])
    manager = principal(team["manager"])
    entry = await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))

    rejected = await service.delete_entry(manager, entry.id)
    assert rejected.status == "REJECTED"
    assert rejected.approver_id == manager.id
    again = await service.delete_entry(manager, entry.id)
    assert again.status == "REJECTED"

    # a rejected day is free again
    await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))


@pytest.mark.asyncio
async def test_owner_cannot_delete_decided_entry(service, team):
    actor = principal(team["employee"])
    sick = await service.create_entry(
        actor, actor.id, EntryDraft(EntryKind.SICK_DAY, date(2024, 3, 13))
    )
    await expect(ErrorCode.ILLEGAL_STATUS_TRANSITION, service.delete_entry(actor, sick.id))


@pytest.mark.asyncio
async def test_stranger_cannot_delete(service, team, make_user):
    actor = principal(team["employee"])
    entry = await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))
    stranger = principal(await make_user())
    await expect(ErrorCode.UNAUTHORIZED_ACTOR, service.delete_entry(stranger, entry.id))


# ── List ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_list_range_and_status_filter(service, team):
    actor = principal(team["employee"])
    manager = principal(team["manager"])
    await service.create_entry(actor, actor.id, vacation(date(2025, 5, 7)))
    await service.create_entry(actor, actor.id, vacation(date(2025, 5, 5)))
    await service.create_entry(manager, actor.id, vacation(date(2025, 5, 6)))
    await service.create_entry(actor, actor.id, vacation(date(2025, 5, 9)))

    entries = await service.list_entries(actor, actor.id, date(2025, 5, 5), date(2025, 5, 7))
    assert [e.date.day for e in entries] == [5, 6, 7]

    only_first = await service.list_entries(actor, actor.id, date(2025, 5, 5))
    assert len(only_first) == 1

    accepted = await service.list_entries(
        manager, actor.id, date(2025, 5, 1), date(2025, 5, 31), Status.ACCEPTED
    )
    assert [e.date.day for e in accepted] == [6]

    await expect(
        ErrorCode.INVALID_REQUEST,
        service.list_entries(actor, actor.id, date(2025, 5, 7), date(2025, 5, 5)),
    )


@pytest.mark.asyncio
async def test_pending_actor_is_refused_before_lookup(service, make_user, team):
    """A PENDING user learns nothing about which entry ids exist."""
    newcomer = principal(await make_user(status=Status.PENDING))
    entry = await service.create_entry(
        principal(team["employee"]), team["employee"].id, vacation(date(2025, 6, 10))
    )
    for entry_id in (entry.id, 424242):
        await expect(ErrorCode.UNAUTHORIZED_ACTOR, service.delete_entry(newcomer, entry_id))
        await expect(
            ErrorCode.UNAUTHORIZED_ACTOR,
            service.update_entry(newcomer, entry_id, vacation(date(2025, 6, 11))),
        )
