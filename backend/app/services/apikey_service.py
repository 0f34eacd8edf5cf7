"""API key lifecycle: generate, validate, revoke, rotate and list.

Every state change is a single conditional UPDATE keyed by id, organization
and the expected prior state.  The database's row-level atomicity is the only
lock: two concurrent rotations of the same key cannot both win, and a revoked
key can never be brought back by rotating it.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.errors import InternalError, InvalidCredential
from app.auth.tenancy import tenant_filter
from app.config import settings
from app.db.engine import async_session
from app.db.models import ApiKey
from app.utils.background import fire_and_forget
from app.utils.metrics import record_api_key_operation

logger = logging.getLogger("tenantgate.apikeys")

INVALID_KEY_MESSAGE = "Invalid or revoked API key."


def new_secret(length: int | None = None) -> str:
    """Return ``length`` random bytes, hex-encoded."""
    return secrets.token_hex(length or settings.API_KEY_LENGTH)


async def generate_key(db: AsyncSession, organization_id: str) -> ApiKey:
    """Create a fresh, unrevoked key for *organization_id*.

    The unique constraint on ``apikeys.key`` is what guarantees uniqueness; a
    collision rolls back the insert and retries with a new secret.
    """
    attempts = max(1, settings.API_KEY_GENERATE_ATTEMPTS)
    last_error: IntegrityError | None = None
    for attempt in range(1, attempts + 1):
        api_key = ApiKey(key=new_secret(), organization_id=organization_id, revoked=False)
        db.add(api_key)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("API key collision on attempt %d/%d for org=%s", attempt, attempts, organization_id)
            last_error = exc
            continue
        await db.refresh(api_key)
        record_api_key_operation("generate")
        logger.info("Generated API key id=%s preview=%s org=%s", api_key.id, api_key.preview, organization_id)
        return api_key
    raise InternalError("Failed to generate API key.", error=str(last_error))


async def validate_key(db: AsyncSession, raw_key: str) -> ApiKey:
    """Resolve *raw_key* to its (unrevoked) row, or raise InvalidCredential.

    The returned row carries the owning ``organization_id``.  ``last_used_at``
    is stamped in a detached task: failing to record it never fails the
    authentication.
    """
    if not raw_key:
        raise InvalidCredential(INVALID_KEY_MESSAGE)
    result = await db.execute(
        select(ApiKey).where(ApiKey.key == raw_key, ApiKey.revoked.is_(False))
    )
    api_key = result.scalar_one_or_none()
    if api_key is None:
        raise InvalidCredential(INVALID_KEY_MESSAGE)
    fire_and_forget(_touch_last_used(api_key.id, raw_key), name=f"apikey-last-used:{api_key.id}")
    return api_key


async def _touch_last_used(key_id: str, raw_key: str) -> None:
    try:
        async with async_session() as db:
            # Matching on the key value too keeps a stamp from landing on a
            # row that was rotated in the meantime.
            await db.execute(
                update(ApiKey)
                .where(ApiKey.id == key_id, ApiKey.key == raw_key)
                .values(last_used_at=datetime.now(timezone.utc))
            )
            await db.commit()
    except SQLAlchemyError as exc:
        logger.warning("Could not update last_used_at for API key id=%s: %s", key_id, exc)


async def get_key(db: AsyncSession, key_id: str, organization_id: str) -> ApiKey | None:
    result = await db.execute(
        select(ApiKey)
        .where(*tenant_filter(ApiKey, key_id, organization_id))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def revoke_key(db: AsyncSession, key_id: str, organization_id: str) -> ApiKey | None:
    """Mark the key revoked.  Idempotent; ``None`` when not in this organization."""
    await db.execute(
        update(ApiKey)
        .where(*tenant_filter(ApiKey, key_id, organization_id))
        .values(revoked=True)
        .execution_options(synchronize_session=False)
    )
    api_key = await get_key(db, key_id, organization_id)
    if api_key is not None:
        record_api_key_operation("revoke")
        logger.info("Revoked API key id=%s org=%s", key_id, organization_id)
    return api_key


async def rotate_key(db: AsyncSession, key_id: str, organization_id: str) -> ApiKey | None:
    """Swap in a new secret for an unrevoked key of this organization.

    Compare-and-swap on the current secret: if another rotation (or a
    revocation) lands between the read and the write, the UPDATE matches no
    row and this call returns ``None``.
    """
    current = await db.execute(
        select(ApiKey.key).where(
            *tenant_filter(ApiKey, key_id, organization_id),
            ApiKey.revoked.is_(False),
        )
    )
    observed = current.scalar_one_or_none()
    if observed is None:
        return None

    result = await db.execute(
        update(ApiKey)
        .where(
            *tenant_filter(ApiKey, key_id, organization_id),
            ApiKey.revoked.is_(False),
            ApiKey.key == observed,
        )
        .values(key=new_secret())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Rotation of API key id=%s lost a concurrent update", key_id)
        return None
    api_key = await get_key(db, key_id, organization_id)
    record_api_key_operation("rotate")
    logger.info("Rotated API key id=%s org=%s", key_id, organization_id)
    return api_key


async def list_keys(db: AsyncSession, organization_id: str) -> list[ApiKey]:
    """All keys of one organization, revoked ones included."""
    result = await db.execute(
        select(ApiKey)
        .where(ApiKey.organization_id == organization_id)
        .order_by(ApiKey.created_at)
    )
    return list(result.scalars().all())
