"""Machine-to-machine endpoints authenticated by ``x-api-key`` only."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from app.auth.errors import InternalError
from app.auth.pipeline import RequestContext, api_key, guard
from app.schemas.projects import ProjectOut
from app.services import project_service

router = APIRouter(tags=["service"])

key_holder = guard(api_key)


@router.get("/whoami")
async def whoami(ctx: RequestContext = Depends(key_holder)) -> dict:
    return {
        "organization_id": ctx.principal.organization_id,
        "role": ctx.principal.role,
        "api_key_id": ctx.api_key_id,
    }


@router.get("/projects", response_model=list[ProjectOut])
async def list_projects(ctx: RequestContext = Depends(key_holder)):
    try:
        return await project_service.list_projects(ctx.db, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to list projects.", error=str(exc)) from exc
