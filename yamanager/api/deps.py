"""
FastAPI dependencies — database session, clock and the acting principal.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core import clock as server_clock
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.core.security import decode_id_token
from yamanager.db.session import async_session_factory
from yamanager.models.enums import Status
from yamanager.services.guard import Principal
from yamanager.services.identity import IdentityResolver, Profile

# auto_error=False so the id_token cookie can be tried when the header is missing
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_clock() -> server_clock.Clock:
    return server_clock.now


# ── Auth ────────────────────────────────────────────────────────────
async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    id_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Verify the ID token (header first, then cookie) and resolve the actor."""
    token = credentials.credentials if credentials else None
    if not token and id_token:
        token = id_token.removeprefix("Bearer ").strip()
    if not token:
        raise DomainError(ErrorCode.UNAUTHENTICATED, "no identity token")

    identity = decode_id_token(token)
    if identity is None:
        raise DomainError(ErrorCode.UNAUTHENTICATED, "identity token rejected")

    user = await IdentityResolver(db).resolve(
        identity.subject, Profile(email=identity.email, name=identity.name)
    )
    if user.status == Status.REJECTED.value:
        raise DomainError(ErrorCode.UNAUTHORIZED_ACTOR, f"user {user.id} is rejected")
    return Principal.of(user)
