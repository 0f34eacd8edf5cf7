"""Read-only listing of the caller's organization's audit entries."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from app.auth.errors import InternalError
from app.auth.pipeline import RequestContext, bearer_token, guard
from app.auth.roles import allow_roles
from app.schemas.audit import AuditEntryOut, AuditPage
from app.services import audit_service

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=AuditPage)
async def list_audit_entries(
    event: str | None = Query(None, description="Filter by event (login_success|login_failure|admin_action|api_key_usage)"),
    since: datetime | None = Query(None, description="ISO timestamp lower bound"),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(guard(bearer_token, allow_roles("admin"))),
) -> AuditPage:
    if event is not None and event not in audit_service.AUDIT_EVENTS:
        raise HTTPException(status_code=422, detail=f"Unknown event '{event}'")
    try:
        rows = await audit_service.list_entries(
            ctx.db,
            ctx.principal.organization_id,
            event=event,
            since=since,
            limit=limit,
            offset=offset,
        )
    except SQLAlchemyError as exc:
        raise InternalError("Failed to list audit log.", error=str(exc)) from exc
    return AuditPage(
        entries=[AuditEntryOut.model_validate(r) for r in rows],
        limit=limit,
        offset=offset,
    )
