"""
Approval service — time-off decisions and account authorization.

Re-issuing the decision an item already carries is a no-op; any other move
not allowed by the state machines fails with ``ILLEGAL_STATUS_TRANSITION``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core import clock as server_clock
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.db.transaction import run_in_transaction
from yamanager.models.calendar_entry import CalendarEntry
from yamanager.models.enums import REQUEST_KINDS, Role, Status
from yamanager.models.user import User, UserPolicy
from yamanager.services.calendar import (check_balance, draft_of, live_entries,
                                         load_entry, load_policy, load_user,
                                         owner_of)
from yamanager.services.guard import (SYSTEM, Action, Principal, Target,
                                      ensure, ensure_active, may)
from yamanager.services.policy import snapshot_policy
from yamanager.services.state_machine import (AccountStateMachine,
                                              EntryStateMachine)

logger = logging.getLogger(__name__)

_DECISIONS = {Status.ACCEPTED, Status.REJECTED}


class ApprovalService:
    def __init__(self, session: AsyncSession, clock: server_clock.Clock = server_clock.now):
        self.session = session
        self.clock = clock

    # ── Listings ────────────────────────────────────────────────────
    async def list_time_off_requests(
        self, actor: Principal, status: Status | None = None
    ) -> list[CalendarEntry]:
        """Vacation and overtime entries the actor may decide."""
        query = (
            select(CalendarEntry, User.supervisor_id)
            .join(User, CalendarEntry.owner_id == User.id)
            .where(CalendarEntry.kind.in_([k.value for k in REQUEST_KINDS]))
            .order_by(CalendarEntry.date, CalendarEntry.created_at, CalendarEntry.id)
        )
        if status is not None:
            query = query.where(CalendarEntry.status == status.value)
        result = await self.session.execute(query)
        return [
            entry
            for entry, supervisor_id in result.all()
            if may(actor, Action.DECIDE_TIME_OFF, Target(entry.owner_id, supervisor_id))
        ]

    async def list_authorization_requests(
        self, actor: Principal, status: Status | None = None
    ) -> list[User]:
        ensure(actor, Action.DECIDE_AUTHORIZATION, SYSTEM)
        query = select(User).order_by(User.created_at, User.id)
        if status is not None:
            query = query.where(User.status == status.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _supervises_anyone(self, actor_id: int) -> bool:
        result = await self.session.execute(
            select(User.id).where(User.supervisor_id == actor_id).limit(1)
        )
        return result.first() is not None

    # ── Decisions ───────────────────────────────────────────────────
    async def decide_time_off(self, actor: Principal, entry_id: int, new_status: Status) -> CalendarEntry:
        if new_status not in _DECISIONS:
            raise DomainError(
                ErrorCode.ILLEGAL_STATUS_TRANSITION, f"{new_status.value} is not a decision"
            )
        ensure_active(actor)
        if not actor.is_admin and not await self._supervises_anyone(actor.id):
            raise DomainError(
                ErrorCode.UNAUTHORIZED_ACTOR, f"user {actor.id} supervises nobody"
            )
        owner_id = await owner_of(self.session, entry_id)

        async def _decide(session: AsyncSession) -> CalendarEntry:
            entry = await load_entry(session, entry_id)
            owner = await load_user(session, entry.owner_id)
            ensure(actor, Action.DECIDE_TIME_OFF, Target.of(owner))

            if entry.status == new_status.value:
                return entry
            EntryStateMachine.validate_transition(entry.status, new_status.value)

            if new_status is Status.ACCEPTED:
                # the policy may have shrunk since the entry was filed
                policy = await load_policy(session, entry.owner_id)
                entries = await live_entries(session, entry.owner_id)
                check_balance(draft_of(entry), policy, entries, exclude_id=entry.id)

            entry.status = new_status.value
            entry.approver_id = actor.id
            entry.status_changed_at = self.clock()
            logger.info(
                "User %d set entry %d of user %d to %s",
                actor.id, entry.id, entry.owner_id, entry.status,
            )
            return entry

        return await run_in_transaction(self.session, _decide, lock_key=owner_id)

    async def decide_authorization(
        self,
        actor: Principal,
        user_id: int,
        new_status: Status,
        role: Role | None = None,
    ) -> User:
        """Accept, reject or re-open a user account (admin only).

        On acceptance the optional ``role`` is applied and a policy that is
        still the registration snapshot is re-taken from that role's defaults.
        """

        async def _decide(session: AsyncSession) -> User:
            user = await load_user(session, user_id)
            ensure(actor, Action.DECIDE_AUTHORIZATION, Target.of(user))

            if user.status == new_status.value and role in (None, Role(user.role)):
                return user
            if user.status != new_status.value:
                AccountStateMachine.validate_transition(user.status, new_status.value)
            elif new_status is not Status.ACCEPTED:
                raise DomainError(
                    ErrorCode.ILLEGAL_STATUS_TRANSITION, "role is only assigned on acceptance"
                )

            user.status = new_status.value
            if new_status is Status.ACCEPTED:
                if role is not None:
                    user.role = role.value
                policy = await session.get(UserPolicy, user_id, populate_existing=True)
                if policy is None or not policy.finalized:
                    await snapshot_policy(session, user_id, user.role, finalized=True)
            logger.info(
                "User %d set account %d to %s (%s)", actor.id, user_id, user.status, user.role
            )
            return user

        return await run_in_transaction(self.session, _decide, lock_key=user_id)
