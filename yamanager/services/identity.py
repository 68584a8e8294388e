"""
Identity resolver — verified external subject → internal user.

Users are created on first sight with status PENDING, role EMPLOYEE and a
policy snapshotted from the EMPLOYEE defaults. The unique index on
``external_subject`` settles creation races: the loser rolls back and reads
the winner's row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core.config import settings
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.models.enums import Role, Status
from yamanager.models.user import User
from yamanager.services.policy import snapshot_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    email: str | None
    name: str | None

    def normalised(self) -> tuple[str, str]:
        email = (self.email or "").strip().lower()
        name = (self.name or "").strip()
        if not email or not name:
            raise DomainError(
                ErrorCode.IDENTITY_PROFILE_INCOMPLETE,
                "identity profile lacks email or display name",
            )
        return email, name


async def _find(session: AsyncSession, subject: str) -> User | None:
    result = await session.execute(
        select(User)
        .where(User.external_subject == subject)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class IdentityResolver:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, subject: str, profile: Profile) -> User:
        """Return the user for ``subject``, registering it on first sight."""
        email, name = profile.normalised()

        user = await _find(self.session, subject)
        if user is not None:
            if user.email != email or user.name != name:
                user.email, user.name = email, name
                await self.session.commit()
                logger.info("Refreshed profile of user %d", user.id)
            return user

        bootstrap = email == settings.ADMIN_BOOTSTRAP_EMAIL.strip().lower()
        role = Role.ADMIN if bootstrap else Role.EMPLOYEE
        try:
            user = User(
                external_subject=subject,
                name=name,
                email=email,
                role=role.value,
                status=(Status.ACCEPTED if bootstrap else Status.PENDING).value,
            )
            self.session.add(user)
            await self.session.flush()
            await snapshot_policy(self.session, user.id, role.value, finalized=bootstrap)
            await self.session.commit()
            logger.info(
                "Registered user %d (%s) as %s/%s", user.id, email, user.role, user.status
            )
        except IntegrityError:
            await self.session.rollback()
            user = await _find(self.session, subject)
            if user is None:
                raise
            logger.info("Registration race handled for subject %s", subject)
        return user
