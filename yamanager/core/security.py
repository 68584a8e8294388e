"""
OIDC ID-token verification (python-jose).

The identity provider signs ID tokens; we verify signature, issuer, audience
and expiry and hand the verified subject and profile claims to the identity
resolver. ``create_id_token`` mints tokens with the configured key and is
used for local development and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from yamanager.core.config import settings


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    email: str | None
    name: str | None


def decode_id_token(token: str) -> VerifiedIdentity | None:
    """Return the verified identity, or ``None`` if the token is invalid."""
    options = {"verify_aud": settings.OIDC_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            settings.OIDC_SIGNING_KEY,
            algorithms=settings.OIDC_ALGORITHMS,
            audience=settings.OIDC_AUDIENCE,
            issuer=settings.OIDC_ISSUER,
            options=options,
        )
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None
    return VerifiedIdentity(
        subject=str(subject),
        email=payload.get("email"),
        name=payload.get("name"),
    )


def create_id_token(
    subject: str,
    email: str | None = None,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, object] = {
        "sub": subject,
        "iss": settings.OIDC_ISSUER,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
    }
    if settings.OIDC_AUDIENCE is not None:
        claims["aud"] = settings.OIDC_AUDIENCE
    if email is not None:
        claims["email"] = email
    if name is not None:
        claims["name"] = name
    return jwt.encode(claims, settings.OIDC_SIGNING_KEY, algorithm="HS256")
