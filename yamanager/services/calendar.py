"""
Calendar service — create, edit, delete and list calendar entries.

Every write runs in an owner-locked transaction (see
:mod:`yamanager.db.transaction`) so the overlap and balance checks read a
state no sibling request can change before commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core import clock as server_clock
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.db.transaction import run_in_transaction
from yamanager.models.calendar_entry import CalendarEntry
from yamanager.models.enums import EXCLUSIVE_KINDS, LIVE_STATUSES, EntryKind, Status
from yamanager.models.user import User, UserPolicy
from yamanager.services import ledger
from yamanager.services.guard import (Action, Principal, Target, ensure,
                                      ensure_active)

logger = logging.getLogger(__name__)

MAX_OVERTIME_HOURS = 24


@dataclass(frozen=True)
class EntryDraft:
    """Client-supplied shape of an entry, before any rule is applied."""

    kind: EntryKind
    date: date
    start_time: time | None = None
    end_time: time | None = None
    hours: float | None = None


# ── Shared loaders (also used by the approval service) ──────────────
async def load_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id, populate_existing=True)
    if user is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"user {user_id} not found")
    return user


async def load_policy(session: AsyncSession, user_id: int) -> UserPolicy:
    policy = await session.get(UserPolicy, user_id, populate_existing=True)
    if policy is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"no policy for user {user_id}")
    return policy


async def load_entry(session: AsyncSession, entry_id: int) -> CalendarEntry:
    entry = await session.get(CalendarEntry, entry_id, populate_existing=True)
    if entry is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"calendar entry {entry_id} not found")
    return entry


async def owner_of(session: AsyncSession, entry_id: int) -> int:
    """Owner id of an entry, read before the owner lock is taken."""
    result = await session.execute(
        select(CalendarEntry.owner_id).where(CalendarEntry.id == entry_id)
    )
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"calendar entry {entry_id} not found")
    return owner_id


async def live_entries(session: AsyncSession, owner_id: int) -> list[CalendarEntry]:
    result = await session.execute(
        select(CalendarEntry)
        .where(
            CalendarEntry.owner_id == owner_id,
            CalendarEntry.status.in_([s.value for s in LIVE_STATUSES]),
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# ── Rules ───────────────────────────────────────────────────────────
def validate_draft(draft: EntryDraft, policy: UserPolicy, now: datetime, *, check_lead_time: bool) -> None:
    today = server_clock.local_date(now)

    if draft.kind is EntryKind.VACATION:
        if draft.hours is not None:
            raise DomainError(ErrorCode.INVALID_REQUEST, "vacation entries carry no hours")
        if (draft.start_time is None) != (draft.end_time is None):
            raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, "vacation window needs start and end")
        if draft.start_time is not None and draft.start_time >= draft.end_time:
            raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, "vacation window ends before it starts")
        if draft.start_time is not None and ledger.window_hours(draft.start_time, draft.end_time) <= 0:
            raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, "vacation window shorter than half an hour")
        if check_lead_time:
            lead = policy.notification_lead_time or timedelta(0)
            earliest = server_clock.local_date(now + lead)
            if draft.date < earliest:
                raise DomainError(
                    ErrorCode.LEAD_TIME_VIOLATED,
                    f"vacation on {draft.date} is before earliest allowed {earliest}",
                )
        return

    if draft.start_time is not None or draft.end_time is not None:
        raise DomainError(ErrorCode.INVALID_REQUEST, f"{draft.kind.value} entries carry no window")

    if draft.kind is EntryKind.OVERTIME:
        if draft.hours is None or not 0 < draft.hours <= MAX_OVERTIME_HOURS:
            raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, f"overtime hours {draft.hours} outside (0, 24]")
        if draft.date > today:
            raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, f"overtime on future date {draft.date}")
        return

    # SICK_DAY
    if draft.hours is not None:
        raise DomainError(ErrorCode.INVALID_REQUEST, "sick days carry no hours")
    if draft.date > today + timedelta(days=1):
        raise DomainError(ErrorCode.DATE_OUT_OF_RANGE, f"sick day {draft.date} is too far ahead")


def check_overlap(draft: EntryDraft, entries: list[CalendarEntry], exclude_id: int | None = None) -> None:
    same_day = [e for e in entries if e.date == draft.date and e.id != exclude_id]
    if not same_day:
        return

    exclusive = {k.value for k in EXCLUSIVE_KINDS}
    has_exclusive = any(e.kind in exclusive for e in same_day)
    has_overtime = any(e.kind == EntryKind.OVERTIME.value for e in same_day)
    blocks_overtime = any(
        e.kind == EntryKind.SICK_DAY.value
        or (e.kind == EntryKind.VACATION.value and ledger.is_whole_day(e))
        for e in same_day
    )

    if draft.kind.value in exclusive:
        draft_blocks_overtime = draft.kind is EntryKind.SICK_DAY or ledger.is_whole_day(draft)
        if has_exclusive or (has_overtime and draft_blocks_overtime):
            raise DomainError(ErrorCode.OVERLAPPING_ENTRY, f"{draft.date} already occupied")
    elif blocks_overtime:
        raise DomainError(ErrorCode.OVERLAPPING_ENTRY, f"overtime on {draft.date} collides with absence")


def check_balance(
    draft: EntryDraft, policy: UserPolicy, entries: list[CalendarEntry], exclude_id: int | None = None
) -> None:
    others = [e for e in entries if e.id != exclude_id]

    if draft.kind is EntryKind.VACATION:
        remaining = ledger.remaining_vacation(policy, others) - ledger.day_fraction(draft)
        if remaining < 0:
            raise DomainError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"vacation would leave {float(remaining):.3f} days",
            )
    elif draft.kind is EntryKind.OVERTIME:
        reserved = ledger.overtime_reserved(others) + ledger.to_fraction(draft.hours)
        if reserved > ledger.to_fraction(policy.overtime_hours_taken_budget):
            raise DomainError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"overtime would reach {float(reserved)}h of {policy.overtime_hours_taken_budget}h",
            )


def draft_of(entry: CalendarEntry) -> EntryDraft:
    return EntryDraft(
        kind=EntryKind(entry.kind),
        date=entry.date,
        start_time=entry.start_time,
        end_time=entry.end_time,
        hours=entry.hours,
    )


async def _flush_entry(session: AsyncSession, entry: CalendarEntry) -> None:
    try:
        await session.flush()
    except IntegrityError as exc:
        # partial unique index lost a race with a sibling insert
        raise DomainError(ErrorCode.OVERLAPPING_ENTRY, f"{entry.date} taken concurrently") from exc


class CalendarService:
    def __init__(self, session: AsyncSession, clock: server_clock.Clock = server_clock.now):
        self.session = session
        self.clock = clock

    async def create_entry(self, actor: Principal, owner_id: int, draft: EntryDraft) -> CalendarEntry:
        """Create an entry for ``owner_id``.

        The owner creates PENDING entries (SICK_DAY is accepted at once). An
        approver of the owner may create entries that are ACCEPTED already.
        """

        async def _create(session: AsyncSession) -> CalendarEntry:
            now = self.clock()
            owner = await load_user(session, owner_id)
            target = Target.of(owner)

            on_behalf = actor.id != owner_id
            ensure(actor, Action.DECIDE_TIME_OFF if on_behalf else Action.MANAGE_OWN_ENTRY, target)

            policy = await load_policy(session, owner_id)
            validate_draft(draft, policy, now, check_lead_time=not on_behalf)
            entries = await live_entries(session, owner_id)
            check_overlap(draft, entries)
            check_balance(draft, policy, entries)

            accepted = on_behalf or draft.kind is EntryKind.SICK_DAY
            entry = CalendarEntry(
                owner_id=owner_id,
                kind=draft.kind.value,
                date=draft.date,
                start_time=draft.start_time,
                end_time=draft.end_time,
                hours=draft.hours,
                status=(Status.ACCEPTED if accepted else Status.PENDING).value,
                approver_id=actor.id if accepted else None,
                created_at=now,
                status_changed_at=now,
            )
            session.add(entry)
            await _flush_entry(session, entry)
            return entry

        entry = await run_in_transaction(self.session, _create, lock_key=owner_id)
        logger.info(
            "User %d created %s entry %d for user %d on %s (%s)",
            actor.id, entry.kind, entry.id, owner_id, entry.date, entry.status,
        )
        return entry

    async def update_entry(self, actor: Principal, entry_id: int, draft: EntryDraft) -> CalendarEntry:
        """Owner edit of a PENDING entry; the kind cannot change."""
        ensure_active(actor)
        owner_id = await owner_of(self.session, entry_id)

        async def _update(session: AsyncSession) -> CalendarEntry:
            now = self.clock()
            entry = await load_entry(session, entry_id)
            owner = await load_user(session, entry.owner_id)
            ensure(actor, Action.MANAGE_OWN_ENTRY, Target.of(owner))
            if entry.status != Status.PENDING.value:
                raise DomainError(
                    ErrorCode.ILLEGAL_STATUS_TRANSITION,
                    f"entry {entry_id} is {entry.status}, only PENDING entries are editable",
                )
            if draft.kind.value != entry.kind:
                raise DomainError(ErrorCode.INVALID_REQUEST, "the kind of an entry cannot change")

            policy = await load_policy(session, entry.owner_id)
            validate_draft(draft, policy, now, check_lead_time=True)
            entries = await live_entries(session, entry.owner_id)
            check_overlap(draft, entries, exclude_id=entry.id)
            check_balance(draft, policy, entries, exclude_id=entry.id)

            entry.date = draft.date
            entry.start_time = draft.start_time
            entry.end_time = draft.end_time
            entry.hours = draft.hours
            await _flush_entry(session, entry)
            return entry

        entry = await run_in_transaction(self.session, _update, lock_key=owner_id)
        logger.info("User %d edited entry %d", actor.id, entry_id)
        return entry

    async def delete_entry(self, actor: Principal, entry_id: int) -> CalendarEntry | None:
        """Delete a PENDING entry (owner) or reject an entry (approver).

        Returns the rejected entry, or ``None`` when the row was deleted.
        """
        ensure_active(actor)
        owner_id = await owner_of(self.session, entry_id)

        async def _delete(session: AsyncSession) -> CalendarEntry | None:
            entry = await load_entry(session, entry_id)
            owner = await load_user(session, entry.owner_id)
            target = Target.of(owner)

            if actor.id == entry.owner_id:
                ensure(actor, Action.MANAGE_OWN_ENTRY, target)
                if entry.status != Status.PENDING.value:
                    raise DomainError(
                        ErrorCode.ILLEGAL_STATUS_TRANSITION,
                        f"entry {entry_id} is {entry.status}, owners delete PENDING entries only",
                    )
                await session.delete(entry)
                return None

            ensure(actor, Action.DECIDE_TIME_OFF, target)
            if entry.status == Status.REJECTED.value:
                return entry
            entry.status = Status.REJECTED.value
            entry.approver_id = actor.id
            entry.status_changed_at = self.clock()
            return entry

        result = await run_in_transaction(self.session, _delete, lock_key=owner_id)
        if result is None:
            logger.info("User %d deleted entry %d", actor.id, entry_id)
        else:
            logger.info("User %d rejected entry %d via delete", actor.id, entry_id)
        return result

    async def list_entries(
        self,
        actor: Principal,
        owner_id: int,
        date_from: date,
        date_to: date | None = None,
        status: Status | None = None,
    ) -> list[CalendarEntry]:
        owner = await load_user(self.session, owner_id)
        ensure(actor, Action.READ, Target.of(owner))

        date_to = date_to or date_from
        if date_to < date_from:
            raise DomainError(ErrorCode.INVALID_REQUEST, f"range {date_from}..{date_to} is reversed")

        query = (
            select(CalendarEntry)
            .where(
                CalendarEntry.owner_id == owner_id,
                CalendarEntry.date >= date_from,
                CalendarEntry.date <= date_to,
            )
            .order_by(CalendarEntry.date, CalendarEntry.created_at, CalendarEntry.id)
            .execution_options(populate_existing=True)
        )
        if status is not None:
            query = query.where(CalendarEntry.status == status.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())
