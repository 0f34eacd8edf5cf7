"""Audit recorder: an append-only log of security-relevant events.

``record`` is fire-and-forget: the insert runs as a detached task on its own
session, after the caller has committed the action being audited.  A failed
insert is logged and counted, never raised, and never rolls anything back.
Audit entries are advisory; a crash between the action and the write can
leave an action without an entry.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import async_session
from app.db.models import AuditLog
from app.utils.background import fire_and_forget
from app.utils.metrics import record_audit_failure, record_audit_write
from app.utils.redaction import redact_sensitive_data

logger = logging.getLogger("tenantgate.audit")

LOGIN_SUCCESS = "login_success"
LOGIN_FAILURE = "login_failure"
ADMIN_ACTION = "admin_action"
API_KEY_USAGE = "api_key_usage"

AUDIT_EVENTS = (LOGIN_SUCCESS, LOGIN_FAILURE, ADMIN_ACTION, API_KEY_USAGE)


def record(
    event: str,
    user_id: str | None = None,
    organization_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Schedule an audit entry.  Returns immediately; never raises."""
    if event not in AUDIT_EVENTS:
        logger.error("Dropping audit entry with unknown event '%s'", event)
        record_audit_failure(event)
        return
    entry = AuditLog(
        event=event,
        user_id=user_id,
        organization_id=organization_id,
        details_json=json.dumps(redact_sensitive_data(details), default=str) if details else None,
    )
    try:
        fire_and_forget(_write(entry), name=f"audit:{event}")
    except RuntimeError:
        # No running event loop (called from sync code during shutdown).
        logger.warning("No event loop available; audit entry '%s' dropped", event)
        record_audit_failure(event)


async def _write(entry: AuditLog) -> None:
    started = time.perf_counter()
    try:
        async with async_session() as db:
            db.add(entry)
            await db.commit()
    except SQLAlchemyError:
        logger.exception(
            "Audit write failed (event=%s org=%s user=%s)",
            entry.event,
            entry.organization_id,
            entry.user_id,
        )
        record_audit_failure(entry.event)
        return
    record_audit_write(entry.event, time.perf_counter() - started)


# ── Event helpers ─────────────────────────────────────────────────


def log_login_attempt(
    *,
    email: str,
    success: bool,
    user_id: str | None = None,
    organization_id: str | None = None,
) -> None:
    record(
        LOGIN_SUCCESS if success else LOGIN_FAILURE,
        user_id=user_id,
        organization_id=organization_id,
        details={"email": email},
    )


def log_admin_action(
    *,
    action: str,
    user_id: str | None,
    organization_id: str | None,
    details: dict[str, Any] | None = None,
) -> None:
    record(
        ADMIN_ACTION,
        user_id=user_id,
        organization_id=organization_id,
        details={"action": action, **(details or {})},
    )


def log_api_key_usage(
    *,
    api_key_id: str,
    organization_id: str,
    user_id: str | None = None,
    endpoint: str | None = None,
) -> None:
    record(
        API_KEY_USAGE,
        user_id=user_id,
        organization_id=organization_id,
        details={"apiKeyId": api_key_id, "endpoint": endpoint},
    )


# ── Queries ───────────────────────────────────────────────────────


async def list_entries(
    db: AsyncSession,
    organization_id: str,
    *,
    event: str | None = None,
    since: datetime | None = None,
    limit: int = 200,
    offset: int = 0,
) -> list[AuditLog]:
    """Entries owned by one organization, newest first."""
    stmt = (
        select(AuditLog)
        .where(AuditLog.organization_id == organization_id)
        .order_by(desc(AuditLog.created_at))
    )
    if event:
        stmt = stmt.where(AuditLog.event == event)
    if since:
        stmt = stmt.where(AuditLog.created_at >= since)
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())
