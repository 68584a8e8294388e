"""
Authorization guard — who may do what to whose data.

``may`` is a pure predicate over value snapshots of the actor and target so
it can be evaluated anywhere, including inside a retried transaction.

    action                      self  supervisor  admin  other
    READ                         ✓        ✓         ✓      ✗
    MANAGE_OWN_ENTRY             ✓        ✗         ✗      ✗
    DECIDE_TIME_OFF              ✗        ✓         ✓      ✗
    CHANGE_POLICY                ✗        ✓         ✓      ✗
    CHANGE_DEFAULTS              ✗        ✗         ✓      ✗
    DECIDE_AUTHORIZATION         ✗        ✗         ✓      ✗
    ASSIGN_ROLE                  ✗        ✗         ✓      ✗
    TRANSFER_STAFF_DATA          ✗        ✗         ✓      ✗

A REJECTED actor may do nothing. A PENDING actor may only READ itself.
System-wide actions (defaults, staff import/export) use the ``SYSTEM`` target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import Role, Status

logger = logging.getLogger(__name__)

ME = "me"


class Action(str, Enum):
    READ = "read"
    MANAGE_OWN_ENTRY = "manage_own_entry"
    DECIDE_TIME_OFF = "decide_time_off"
    CHANGE_POLICY = "change_policy"
    CHANGE_DEFAULTS = "change_defaults"
    DECIDE_AUTHORIZATION = "decide_authorization"
    ASSIGN_ROLE = "assign_role"
    TRANSFER_STAFF_DATA = "transfer_staff_data"


_SELF_ACTIONS = {Action.READ, Action.MANAGE_OWN_ENTRY}
_SUPERVISOR_ACTIONS = {Action.READ, Action.DECIDE_TIME_OFF, Action.CHANGE_POLICY}
_ADMIN_ACTIONS = {
    Action.READ,
    Action.DECIDE_TIME_OFF,
    Action.CHANGE_POLICY,
    Action.CHANGE_DEFAULTS,
    Action.DECIDE_AUTHORIZATION,
    Action.ASSIGN_ROLE,
    Action.TRANSFER_STAFF_DATA,
}


@dataclass(frozen=True)
class Principal:
    """Immutable snapshot of the acting user."""

    id: int
    role: str
    status: str

    @classmethod
    def of(cls, user) -> Principal:
        return cls(id=user.id, role=user.role, status=user.status)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value and self.status == Status.ACCEPTED.value


@dataclass(frozen=True)
class Target:
    """Snapshot of the user whose data is touched; ``None`` id = system-wide."""

    id: int | None
    supervisor_id: int | None = None

    @classmethod
    def of(cls, user) -> Target:
        return cls(id=user.id, supervisor_id=user.supervisor_id)


SYSTEM = Target(id=None)


def may(actor: Principal, action: Action, target: Target) -> bool:
    if actor.status == Status.REJECTED.value:
        return False
    is_self = target.id is not None and target.id == actor.id
    if actor.status == Status.PENDING.value:
        return is_self and action is Action.READ

    # nobody approves or re-budgets themselves, admins included
    if is_self:
        return action in _SELF_ACTIONS
    if actor.is_admin and action in _ADMIN_ACTIONS:
        return True
    is_supervisor = target.id is not None and target.supervisor_id == actor.id
    return is_supervisor and action in _SUPERVISOR_ACTIONS


def ensure(actor: Principal, action: Action, target: Target) -> None:
    """Raise ``UNAUTHORIZED_ACTOR`` unless ``may`` allows the action."""
    if not may(actor, action, target):
        logger.info(
            "Denied %s for user %d on target %s", action.value, actor.id, target.id
        )
        raise DomainError(
            ErrorCode.UNAUTHORIZED_ACTOR,
            f"user {actor.id} may not {action.value} target {target.id}",
        )


def ensure_active(actor: Principal) -> None:
    """Refuse a non-ACCEPTED actor before any entry id is looked up."""
    if actor.status != Status.ACCEPTED.value:
        logger.info("Denied entry access for %s user %d", actor.status, actor.id)
        raise DomainError(
            ErrorCode.UNAUTHORIZED_ACTOR, f"user {actor.id} is {actor.status}"
        )


def resolve_user_id(raw: str, actor: Principal) -> int:
    """Resolve a path id: ``me`` or a decimal id; anything else is NOT_FOUND."""
    value = raw.strip()
    if value.lower() == ME:
        return actor.id
    if value.isdecimal():
        return int(value)
    raise DomainError(ErrorCode.NOT_FOUND, f"user id '{raw}' is not numeric")
