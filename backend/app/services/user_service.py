"""User service: registration, password login and tenant-scoped lookups.

Passwords are hashed with bcrypt.  Every lookup other than the login-by-email
path is filtered by organization.
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.principal import VALID_ROLES
from app.auth.tenancy import tenant_filter
from app.config import settings
from app.db.models import Organization, User

logger = logging.getLogger("tenantgate.users")


class DuplicateUserError(Exception):
    pass


# bcrypt only looks at the first 72 bytes and newer releases reject longer input.
PASSWORD_MAX_BYTES = 72


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    if len(plain.encode()) > PASSWORD_MAX_BYTES:
        return False
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ── Lookups ───────────────────────────────────────────────────


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == _normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: str, organization_id: str) -> User | None:
    result = await db.execute(select(User).where(*tenant_filter(User, user_id, organization_id)))
    return result.scalar_one_or_none()


async def list_users(db: AsyncSession, organization_id: str) -> list[User]:
    result = await db.execute(
        select(User).where(User.organization_id == organization_id).order_by(User.created_at)
    )
    return list(result.scalars().all())


# ── Registration / login ──────────────────────────────────────


async def register(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    organization: str,
    name: str | None = None,
    role: str | None = None,
) -> tuple[User, Organization]:
    """Create a user, creating the named organization when it does not exist.

    A requested role is only honoured for the user who creates the
    organization; anyone joining an existing organization starts as ``user``.
    """
    if role is not None and role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of: {VALID_ROLES}")
    if len(password.encode()) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes.")
    if not organization.strip():
        raise ValueError("Organization name must not be blank.")
    if await get_user_by_email(db, email):
        raise DuplicateUserError(email)

    org_name = organization.strip()
    result = await db.execute(select(Organization).where(Organization.name == org_name))
    org = result.scalar_one_or_none()
    if org is None:
        org = Organization(name=org_name)
        db.add(org)
        await db.flush()
        effective_role = role or "user"
        logger.info("Created organization '%s' (id=%s)", org_name, org.id)
    else:
        effective_role = "user"
        if role and role != "user":
            logger.warning(
                "Ignoring requested role '%s' for %s joining existing organization %s",
                role, email, org.id,
            )

    user = User(
        email=_normalize_email(email),
        hashed_password=_hash_password(password),
        organization_id=org.id,
        role=effective_role,
        name=name,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Registered user id=%s role='%s' org=%s", user.id, user.role, org.id)
    return user, org


async def authenticate(db: AsyncSession, email: str, password: str) -> tuple[User | None, bool]:
    """Verify email + password.

    Returns ``(user, ok)``: ``user`` is the matching account (if the email
    exists) so a failed attempt can still be attributed in the audit log.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        return None, False
    return user, _verify_password(password, user.hashed_password)


# ── Administration ────────────────────────────────────────────


async def set_role(db: AsyncSession, user_id: str, organization_id: str, role: str) -> User | None:
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of: {VALID_ROLES}")
    await db.execute(
        update(User)
        .where(*tenant_filter(User, user_id, organization_id))
        .values(role=role)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(User)
        .where(*tenant_filter(User, user_id, organization_id))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
