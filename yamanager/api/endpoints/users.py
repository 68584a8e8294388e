"""
User endpoints — listings, profiles, calendars, policies and decisions.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.api.deps import get_clock, get_current_principal, get_db
from yamanager.core import clock as server_clock
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import RequestType
from yamanager.schemas.calendar import CalendarEntryRead
from yamanager.schemas.common import query_date, query_status
from yamanager.schemas.user import (AuthorizationRequestRead, BasicProfileUser,
                                    DecisionRequest, FullUserProfile,
                                    UserSettings)
from yamanager.services.approval import ApprovalService
from yamanager.services.guard import Principal, resolve_user_id
from yamanager.services.policy import Policy, PolicyStore
from yamanager.services.queries import QueryFacade, UserBalance

router = APIRouter(tags=["users"])
logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────
def basic_profile(balance: UserBalance) -> BasicProfileUser:
    user = balance.user
    return BasicProfileUser(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        status=user.status,
        remaining_vacation=float(balance.remaining_vacation),
    )


def full_profile(balance: UserBalance) -> FullUserProfile:
    user, policy = balance.user, balance.policy
    return FullUserProfile(
        **basic_profile(balance).model_dump(),
        supervisor_id=user.supervisor_id,
        created_at=user.created_at,
        vacation_days_total=policy.vacation_days_total,
        overtime_hours_taken_budget=policy.overtime_hours_taken_budget,
        notification_lead_time=policy.notification_lead_time,
        overtime_taken=float(balance.overtime.taken),
        overtime_remaining=float(balance.overtime.remaining),
    )


# ── Listings ────────────────────────────────────────────────────────
@router.get("/users", response_model=list[BasicProfileUser])
async def list_users(
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
) -> list[BasicProfileUser]:
    """Users visible to the actor, optionally filtered by account status."""
    balances = await QueryFacade(db).list_users(actor, query_status(status))
    return [basic_profile(b) for b in balances]


@router.get("/users/requests/vacation", response_model=list[CalendarEntryRead])
async def vacation_requests(
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    return await ApprovalService(db).list_time_off_requests(actor, query_status(status))


@router.get("/users/requests/authorization", response_model=list[AuthorizationRequestRead])
async def authorization_requests(
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    return await ApprovalService(db).list_authorization_requests(actor, query_status(status))


# ── Per-user reads ──────────────────────────────────────────────────
@router.get("/user/{user_id}/profile", response_model=FullUserProfile)
async def user_profile(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
) -> FullUserProfile:
    balance = await QueryFacade(db).full_profile(actor, resolve_user_id(user_id, actor))
    return full_profile(balance)


@router.get("/user/{user_id}/calendar", response_model=list[CalendarEntryRead])
async def user_calendar(
    user_id: str,
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
):
    """Entries dated within [from, to]; ``to`` defaults to ``from``."""
    start = query_date(date_from)
    if start is None:
        raise DomainError(ErrorCode.INVALID_REQUEST, "'from' is required")
    return await QueryFacade(db).user_calendar(
        actor, resolve_user_id(user_id, actor), start, query_date(date_to), query_status(status)
    )


# ── Writes ──────────────────────────────────────────────────────────
@router.put("/user/settings", response_model=UserSettings)
async def update_user_settings(
    body: UserSettings,
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
) -> UserSettings:
    """Replace the policy of user ``body.id`` (supervisor or admin)."""
    policy = Policy(
        vacation_days_total=body.vacation_days_total,
        overtime_hours_taken_budget=body.overtime_hours_taken_budget,
        notification_lead_time=body.notification_lead_time,
    )
    await PolicyStore(db).set_user_policy(
        actor,
        body.id,
        policy,
        role=body.role,
        supervisor_id=body.supervisor_id,
        clear_supervisor=body.clear_supervisor,
    )
    return body


@router.put("/user/requests")
async def decide_request(
    body: DecisionRequest,
    request_type: str = Query(alias="type"),
    db: AsyncSession = Depends(get_db),
    clock: server_clock.Clock = Depends(get_clock),
    actor: Principal = Depends(get_current_principal),
):
    """Decide a time-off request (``type=vacation``) or an account (``type=authorization``)."""
    try:
        kind = RequestType(request_type.strip().lower())
    except ValueError as exc:
        raise DomainError(ErrorCode.INVALID_REQUEST, f"unknown request type {request_type}") from exc

    service = ApprovalService(db, clock)
    if kind is RequestType.VACATION:
        entry = await service.decide_time_off(actor, body.id, body.status)
        return CalendarEntryRead.model_validate(entry)
    user = await service.decide_authorization(actor, body.id, body.status, body.role)
    return AuthorizationRequestRead.model_validate(user)
