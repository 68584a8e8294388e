"""Domain enumerations shared by models, services and schemas."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class Status(str, Enum):
    """Status of a user account or of a calendar entry."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: str | None) -> Status | None:
        """Case-insensitive lookup; ``None`` / blank means "no filter"."""
        if value is None or not value.strip():
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown status '{value}'") from None


class EntryKind(str, Enum):
    VACATION = "VACATION"
    SICK_DAY = "SICK_DAY"
    OVERTIME = "OVERTIME"


# Kinds limited to one live entry per owner and day
EXCLUSIVE_KINDS = (EntryKind.VACATION, EntryKind.SICK_DAY)

# Statuses that reserve or consume balance
LIVE_STATUSES = (Status.PENDING, Status.ACCEPTED)

# Kinds that go through the time-off approval workflow
REQUEST_KINDS = (EntryKind.VACATION, EntryKind.OVERTIME)


class RequestType(str, Enum):
    VACATION = "vacation"
    AUTHORIZATION = "authorization"
