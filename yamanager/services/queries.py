"""Query facade — the read surface behind the REST layer. Never writes."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from fractions import Fraction

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.models.calendar_entry import CalendarEntry
from yamanager.models.enums import LIVE_STATUSES, Role, Status
from yamanager.models.user import User, UserPolicy
from yamanager.services import ledger
from yamanager.services.calendar import CalendarService, load_policy, load_user
from yamanager.services.guard import Action, Principal, Target, ensure, may
from yamanager.services.policy import Policy, PolicyStore


@dataclass(frozen=True)
class UserBalance:
    user: User
    policy: UserPolicy | None
    remaining_vacation: Fraction
    overtime: ledger.OvertimePosition


class QueryFacade:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def full_profile(self, actor: Principal, user_id: int) -> UserBalance:
        user = await load_user(self.session, user_id)
        ensure(actor, Action.READ, Target.of(user))
        policy = await load_policy(self.session, user_id)
        result = await self.session.execute(
            select(CalendarEntry).where(
                CalendarEntry.owner_id == user_id,
                CalendarEntry.status.in_([s.value for s in LIVE_STATUSES]),
            )
        )
        entries = list(result.scalars().all())
        return UserBalance(
            user=user,
            policy=policy,
            remaining_vacation=ledger.remaining_vacation(policy, entries),
            overtime=ledger.overtime_position(policy, entries),
        )

    async def list_users(self, actor: Principal, status: Status | None = None) -> list[UserBalance]:
        """Users the actor may read, with their balances."""
        query = select(User).order_by(User.id)
        if status is not None:
            query = query.where(User.status == status.value)
        users = [
            u
            for u in (await self.session.execute(query)).scalars().all()
            if may(actor, Action.READ, Target.of(u))
        ]
        return await self.balances(users)

    async def balances(self, users: list[User]) -> list[UserBalance]:
        if not users:
            return []
        ids = [u.id for u in users]
        policies = {
            p.user_id: p
            for p in (
                await self.session.execute(select(UserPolicy).where(UserPolicy.user_id.in_(ids)))
            ).scalars().all()
        }
        entries: dict[int, list[CalendarEntry]] = defaultdict(list)
        result = await self.session.execute(
            select(CalendarEntry).where(
                CalendarEntry.owner_id.in_(ids),
                CalendarEntry.status.in_([s.value for s in LIVE_STATUSES]),
            )
        )
        for entry in result.scalars().all():
            entries[entry.owner_id].append(entry)

        balances = []
        for user in users:
            policy = policies.get(user.id)
            own = entries[user.id]
            if policy is None:
                remaining = Fraction(0)
                overtime = ledger.OvertimePosition(ledger.overtime_taken(own), Fraction(0))
            else:
                remaining = ledger.remaining_vacation(policy, own)
                overtime = ledger.overtime_position(policy, own)
            balances.append(UserBalance(user, policy, remaining, overtime))
        return balances

    async def all_users(self) -> list[UserBalance]:
        users = (await self.session.execute(select(User).order_by(User.id))).scalars().all()
        return await self.balances(list(users))

    async def user_calendar(
        self,
        actor: Principal,
        user_id: int,
        date_from: date,
        date_to: date | None = None,
        status: Status | None = None,
    ) -> list[CalendarEntry]:
        return await CalendarService(self.session).list_entries(
            actor, user_id, date_from, date_to, status
        )

    async def defaults(self) -> dict[Role, Policy]:
        return await PolicyStore(self.session).get_defaults()
