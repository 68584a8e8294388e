"""
Policy store — per-role defaults and per-user policy snapshots.

Defaults are templates only: writing them never touches existing
``user_policy`` rows. A user policy is a whole snapshot; edits replace all
three values at once.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core.config import settings
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.db.transaction import run_in_transaction
from yamanager.models.default_settings import DefaultSettings
from yamanager.models.enums import Role
from yamanager.models.user import User, UserPolicy
from yamanager.services.guard import SYSTEM, Action, Principal, Target, ensure

logger = logging.getLogger(__name__)

MAX_LEAD_TIME = timedelta(days=365)


@dataclass(frozen=True)
class Policy:
    vacation_days_total: float
    overtime_hours_taken_budget: float
    notification_lead_time: timedelta

    @classmethod
    def of(cls, row: DefaultSettings | UserPolicy) -> Policy:
        return cls(
            vacation_days_total=row.vacation_days_total,
            overtime_hours_taken_budget=row.overtime_hours_taken_budget,
            notification_lead_time=row.notification_lead_time,
        )

    def apply_to(self, row: DefaultSettings | UserPolicy) -> None:
        row.vacation_days_total = self.vacation_days_total
        row.overtime_hours_taken_budget = self.overtime_hours_taken_budget
        row.notification_lead_time = self.notification_lead_time


def configured_default() -> Policy:
    return Policy(
        vacation_days_total=settings.DEFAULT_VACATION_DAYS,
        overtime_hours_taken_budget=settings.DEFAULT_OVERTIME_BUDGET_HOURS,
        notification_lead_time=timedelta(days=settings.DEFAULT_LEAD_TIME_DAYS),
    )


def validate_policy(policy: Policy) -> None:
    budgets = (policy.vacation_days_total, policy.overtime_hours_taken_budget)
    if not all(math.isfinite(value) for value in budgets):
        raise DomainError(ErrorCode.INVALID_REQUEST, f"non-finite budget in {policy}")
    if policy.vacation_days_total < 0 or policy.overtime_hours_taken_budget < 0:
        raise DomainError(ErrorCode.NEGATIVE_BUDGET, f"negative budget in {policy}")
    if not timedelta(0) <= policy.notification_lead_time <= MAX_LEAD_TIME:
        raise DomainError(
            ErrorCode.LEAD_TIME_OUT_OF_RANGE,
            f"lead time {policy.notification_lead_time} outside [0, 365 days]",
        )


async def seed_defaults(session: AsyncSession) -> int:
    """Insert a configured default row for every role that has none."""
    result = await session.execute(select(DefaultSettings.role))
    present = set(result.scalars().all())
    created = 0
    for role in Role:
        if role.value in present:
            continue
        row = DefaultSettings(role=role.value)
        configured_default().apply_to(row)
        session.add(row)
        created += 1
    if created:
        await session.commit()
        logger.info("Seeded default settings for %d role(s)", created)
    return created


async def load_default(session: AsyncSession, role: str) -> Policy:
    row = await session.get(DefaultSettings, role, populate_existing=True)
    if row is None:
        return configured_default()
    return Policy.of(row)


async def snapshot_policy(session: AsyncSession, user_id: int, role: str, finalized: bool) -> UserPolicy:
    """Create or overwrite ``user_id``'s policy from the ``role`` defaults."""
    defaults = await load_default(session, role)
    policy = await session.get(UserPolicy, user_id, populate_existing=True)
    if policy is None:
        policy = UserPolicy(user_id=user_id)
        session.add(policy)
    defaults.apply_to(policy)
    policy.finalized = finalized
    return policy


class PolicyStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_defaults(self) -> dict[Role, Policy]:
        result = await self.session.execute(select(DefaultSettings))
        rows = {row.role: Policy.of(row) for row in result.scalars().all()}
        return {role: rows.get(role.value, configured_default()) for role in Role}

    async def set_defaults(self, actor: Principal, role: Role, policy: Policy) -> Policy:
        ensure(actor, Action.CHANGE_DEFAULTS, SYSTEM)
        validate_policy(policy)

        async def _write(session: AsyncSession) -> Policy:
            row = await session.get(DefaultSettings, role.value, populate_existing=True)
            if row is None:
                row = DefaultSettings(role=role.value)
                session.add(row)
            policy.apply_to(row)
            return policy

        result = await run_in_transaction(self.session, _write)
        logger.info("Default settings for %s updated by user %d: %s", role.value, actor.id, policy)
        return result

    async def get_user_policy(self, user_id: int) -> Policy:
        row = await self.session.get(UserPolicy, user_id)
        if row is None:
            raise DomainError(ErrorCode.NOT_FOUND, f"no policy for user {user_id}")
        return Policy.of(row)

    async def set_user_policy(
        self,
        actor: Principal,
        user_id: int,
        policy: Policy,
        *,
        role: Role | None = None,
        supervisor_id: int | None = None,
        clear_supervisor: bool = False,
    ) -> Policy:
        """Replace a user's policy; role / supervisor changes are admin only."""
        validate_policy(policy)

        async def _write(session: AsyncSession) -> Policy:
            user = await session.get(User, user_id, populate_existing=True)
            if user is None:
                raise DomainError(ErrorCode.NOT_FOUND, f"user {user_id} not found")
            ensure(actor, Action.CHANGE_POLICY, Target.of(user))

            if role is not None or supervisor_id is not None or clear_supervisor:
                ensure(actor, Action.ASSIGN_ROLE, Target.of(user))
            if role is not None:
                user.role = role.value
            if supervisor_id is not None:
                if supervisor_id == user_id:
                    raise DomainError(ErrorCode.INVALID_REQUEST, "user cannot supervise itself")
                if await session.get(User, supervisor_id) is None:
                    raise DomainError(ErrorCode.NOT_FOUND, f"supervisor {supervisor_id} not found")
                user.supervisor_id = supervisor_id
            elif clear_supervisor:
                user.supervisor_id = None

            row = await session.get(UserPolicy, user_id, populate_existing=True)
            if row is None:
                row = UserPolicy(user_id=user_id)
                session.add(row)
            policy.apply_to(row)
            row.finalized = True
            return policy

        result = await run_in_transaction(self.session, _write, lock_key=user_id)
        logger.info("Policy of user %d replaced by user %d", user_id, actor.id)
        return result
