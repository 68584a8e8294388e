"""
Default settings endpoints — per-role policy templates.

Writing defaults never touches existing users' policies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.api.deps import get_current_principal, get_db
from yamanager.schemas.user import DefaultSettingsRead, DefaultSettingsWrite
from yamanager.services.guard import Principal
from yamanager.services.policy import Policy, PolicyStore
from yamanager.services.queries import QueryFacade

router = APIRouter(tags=["settings"])


@router.get("/settings", response_model=list[DefaultSettingsRead])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _actor: Principal = Depends(get_current_principal),
) -> list[DefaultSettingsRead]:
    """One default policy per role."""
    defaults = await QueryFacade(db).defaults()
    return [
        DefaultSettingsRead(
            role=role,
            vacation_days_total=policy.vacation_days_total,
            overtime_hours_taken_budget=policy.overtime_hours_taken_budget,
            notification_lead_time=policy.notification_lead_time,
        )
        for role, policy in defaults.items()
    ]


@router.post("/settings", response_model=DefaultSettingsRead)
async def create_settings(
    body: DefaultSettingsWrite,
    db: AsyncSession = Depends(get_db),
    actor: Principal = Depends(get_current_principal),
) -> DefaultSettingsRead:
    """Replace the defaults of ``body.role`` (admin only)."""
    policy = Policy(
        vacation_days_total=body.vacation_days_total,
        overtime_hours_taken_budget=body.overtime_hours_taken_budget,
        notification_lead_time=body.notification_lead_time,
    )
    await PolicyStore(db).set_defaults(actor, body.role, policy)
    return DefaultSettingsRead(**body.model_dump())
