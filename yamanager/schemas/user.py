"""Pydantic schemas for user profiles, policies, settings and decisions."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, field_validator

from yamanager.models.enums import Role, Status


def _upper(v: object) -> object:
    return v.strip().upper() if isinstance(v, str) else v


# ── Profiles ────────────────────────────────────────────────────────
class BasicProfileUser(BaseModel):
    id: int
    name: str
    email: str
    role: str
    status: str
    remaining_vacation: float


class FullUserProfile(BasicProfileUser):
    supervisor_id: int | None = None
    created_at: datetime | None = None
    vacation_days_total: float
    overtime_hours_taken_budget: float
    notification_lead_time: timedelta
    overtime_taken: float
    overtime_remaining: float


class AuthorizationRequestRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    status: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Policies ────────────────────────────────────────────────────────
class PolicyFields(BaseModel):
    vacation_days_total: float
    overtime_hours_taken_budget: float
    notification_lead_time: timedelta


class DefaultSettingsRead(PolicyFields):
    role: Role


class DefaultSettingsWrite(PolicyFields):
    role: Role = Role.EMPLOYEE

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v: object) -> object:
        return _upper(v)


class UserSettings(PolicyFields):
    """Replacement policy for user ``id``; role and supervisor are admin only."""

    id: int
    role: Role | None = None
    supervisor_id: int | None = None
    clear_supervisor: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v: object) -> object:
        return _upper(v)


# ── Decisions ───────────────────────────────────────────────────────
class DecisionRequest(BaseModel):
    id: int
    status: Status
    role: Role | None = None

    @field_validator("status", "role", mode="before")
    @classmethod
    def _enum(cls, v: object) -> object:
        return _upper(v)
