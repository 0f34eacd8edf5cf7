"""Bearer token issuance and verification (HS256 via PyJWT).

Tokens are self-contained: the claims ``userId``, ``role`` and
``organizationId`` are copied into the :class:`Principal` without a database
lookup.  A role change or deactivation therefore only takes effect once the
token expires (``AUTH_TOKEN_EXPIRE_HOURS``, 24h by default).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt

from app.auth.errors import InternalError, InvalidCredential
from app.auth.principal import VALID_ROLES, Principal
from app.config import settings

logger = logging.getLogger("tenantgate.auth")

INVALID_TOKEN_MESSAGE = "Invalid or expired token."


def _signing_secret(secret: str | None) -> str:
    key = settings.AUTH_SECRET_KEY if secret is None else secret
    if not key:
        raise InternalError("Authentication is not configured.", error="AUTH_SECRET_KEY is empty")
    return key


def issue_token(
    user_id: str,
    role: str,
    organization_id: str,
    *,
    secret: str | None = None,
    now: datetime | None = None,
) -> str:
    """Sign a token carrying the caller's identity claims."""
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of: {VALID_ROLES}")
    issued = now or datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "role": role,
        "organizationId": organization_id,
        "iat": issued,
        "exp": issued + timedelta(hours=settings.AUTH_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, _signing_secret(secret), algorithm=settings.AUTH_ALGORITHM)


def verify_token(raw_token: str, *, secret: str | None = None) -> Principal:
    """Check signature and expiry, then build the Principal from the claims.

    Raises :class:`InvalidCredential` (403 at the HTTP boundary) for any token
    that is malformed, signed with another secret, expired, or whose claims do
    not describe a valid principal.
    """
    key = _signing_secret(secret)
    try:
        payload = jwt.decode(
            raw_token,
            key,
            algorithms=[settings.AUTH_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        logger.debug("Rejected expired token")
        raise InvalidCredential(INVALID_TOKEN_MESSAGE, status_code=403) from exc
    except jwt.InvalidTokenError as exc:
        logger.debug("Token decode failed: %s", exc)
        raise InvalidCredential(INVALID_TOKEN_MESSAGE, status_code=403) from exc

    user_id = payload.get("userId")
    role = payload.get("role")
    organization_id = payload.get("organizationId")
    if not user_id or not organization_id or role not in VALID_ROLES:
        logger.debug("Token carries incomplete claims: %s", sorted(payload))
        raise InvalidCredential(INVALID_TOKEN_MESSAGE, status_code=403)

    return Principal(user_id=str(user_id), role=role, organization_id=str(organization_id))
