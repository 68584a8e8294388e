"""Tests for the identity resolver and the policy store."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import principal
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import Role
from yamanager.models.user import User, UserPolicy
from yamanager.services.identity import IdentityResolver, Profile
from yamanager.services.policy import Policy, PolicyStore


# ── Identity ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_first_sight_creates_pending_employee(db_session):
    """A new subject becomes a PENDING EMPLOYEE with the EMPLOYEE defaults."""
    user = await IdentityResolver(db_session).resolve("sub-1", Profile("Ann@Example.com", "Ann"))
    assert user.status == "PENDING"
    assert user.role == "EMPLOYEE"
    assert user.email == "ann@example.com"

    policy = await db_session.get(UserPolicy, user.id)
    assert policy.vacation_days_total == 20.0
    assert policy.notification_lead_time == timedelta(days=1)
    assert policy.finalized is False


@pytest.mark.asyncio
async def test_resolve_is_idempotent_and_refreshes_profile(db_session):
    resolver = IdentityResolver(db_session)
    first = await resolver.resolve("sub-2", Profile("bob@example.com", "Bob"))
    second = await resolver.resolve("sub-2", Profile("bob@example.com", "Robert"))
    assert first.id == second.id
    assert second.name == "Robert"

    count = await db_session.execute(select(func.count(User.id)))
    assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_incomplete_profile_is_rejected(db_session):
    with pytest.raises(DomainError) as exc:
        await IdentityResolver(db_session).resolve("sub-3", Profile("  ", "Nameless"))
    assert exc.value.code is ErrorCode.IDENTITY_PROFILE_INCOMPLETE


@pytest.mark.asyncio
async def test_bootstrap_email_becomes_admin(db_session):
    user = await IdentityResolver(db_session).resolve("sub-4", Profile("boss@yamanager.test", "Boss"))
    assert user.role == "ADMIN"
    assert user.status == "ACCEPTED"


# ── Policy store ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_defaults_do_not_touch_existing_policies(db_session, team):
    store = PolicyStore(db_session)
    new = Policy(30, 10, timedelta(days=3))
    await store.set_defaults(principal(team["admin"]), Role.EMPLOYEE, new)

    defaults = await store.get_defaults()
    assert defaults[Role.EMPLOYEE] == new
    policy = await store.get_user_policy(team["employee"].id)
    assert policy.vacation_days_total == 20.0


@pytest.mark.asyncio
async def test_only_admin_sets_defaults(db_session, team):
    with pytest.raises(DomainError) as exc:
        await PolicyStore(db_session).set_defaults(
            principal(team["manager"]), Role.EMPLOYEE, Policy(1, 1, timedelta(0))
        )
    assert exc.value.code is ErrorCode.UNAUTHORIZED_ACTOR


@pytest.mark.asyncio
async def test_supervisor_replaces_user_policy(db_session, team):
    store = PolicyStore(db_session)
    await store.set_user_policy(
        principal(team["manager"]), team["employee"].id, Policy(12.5, 8, timedelta(days=2))
    )
    policy = await store.get_user_policy(team["employee"].id)
    assert policy == Policy(12.5, 8, timedelta(days=2))


@pytest.mark.asyncio
async def test_policy_validation(db_session, team):
    store = PolicyStore(db_session)
    admin = principal(team["admin"])
    with pytest.raises(DomainError) as exc:
        await store.set_user_policy(admin, team["employee"].id, Policy(-1, 0, timedelta(0)))
    assert exc.value.code is ErrorCode.NEGATIVE_BUDGET

    with pytest.raises(DomainError) as exc:
        await store.set_user_policy(admin, team["employee"].id, Policy(1, 0, timedelta(days=366)))
    assert exc.value.code is ErrorCode.LEAD_TIME_OUT_OF_RANGE

    for bad in (float("inf"), float("nan")):
        with pytest.raises(DomainError) as exc:
            await store.set_defaults(admin, Role.EMPLOYEE, Policy(bad, 0, timedelta(0)))
        assert exc.value.code is ErrorCode.INVALID_REQUEST
        with pytest.raises(DomainError) as exc:
            await store.set_user_policy(admin, team["employee"].id, Policy(1, bad, timedelta(0)))
        assert exc.value.code is ErrorCode.INVALID_REQUEST


@pytest.mark.asyncio
async def test_role_assignment_is_admin_only(db_session, team):
    store = PolicyStore(db_session)
    policy = Policy(20, 40, timedelta(days=1))
    with pytest.raises(DomainError) as exc:
        await store.set_user_policy(
            principal(team["manager"]), team["employee"].id, policy, role=Role.MANAGER
        )
    assert exc.value.code is ErrorCode.UNAUTHORIZED_ACTOR

    await store.set_user_policy(
        principal(team["admin"]), team["employee"].id, policy, role=Role.MANAGER
    )
    user = await db_session.get(User, team["employee"].id, populate_existing=True)
    assert user.role == "MANAGER"


@pytest.mark.asyncio
async def test_user_cannot_supervise_itself(db_session, team):
    with pytest.raises(DomainError) as exc:
        await PolicyStore(db_session).set_user_policy(
            principal(team["admin"]),
            team["employee"].id,
            Policy(20, 40, timedelta(days=1)),
            supervisor_id=team["employee"].id,
        )
    assert exc.value.code is ErrorCode.INVALID_REQUEST
