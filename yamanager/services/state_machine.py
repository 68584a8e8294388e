"""Status state machines for calendar entries and user accounts."""

from __future__ import annotations

from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import Status


class _StateMachine:
    VALID_TRANSITIONS: dict[Status, set[Status]] = {}
    subject = "status"

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return Status(to_status) in cls.VALID_TRANSITIONS.get(Status(from_status), set())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise DomainError(
                ErrorCode.ILLEGAL_STATUS_TRANSITION,
                f"{cls.subject}: '{from_status}' -> '{to_status}' is not allowed",
            )


class EntryStateMachine(_StateMachine):
    """Calendar entry transitions.

    - PENDING → ACCEPTED
    - PENDING → REJECTED
    - ACCEPTED → REJECTED (cancellation by an approver)

    Deleting a PENDING entry is the owner's only other move.
    """

    subject = "calendar entry"
    VALID_TRANSITIONS = {
        Status.PENDING: {Status.ACCEPTED, Status.REJECTED},
        Status.ACCEPTED: {Status.REJECTED},
        Status.REJECTED: set(),
    }


class AccountStateMachine(_StateMachine):
    """User account transitions; an admin may send a decided account back to PENDING."""

    subject = "user account"
    VALID_TRANSITIONS = {
        Status.PENDING: {Status.ACCEPTED, Status.REJECTED},
        Status.ACCEPTED: {Status.PENDING},
        Status.REJECTED: {Status.PENDING},
    }
