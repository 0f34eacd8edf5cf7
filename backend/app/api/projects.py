"""Projects API router.

Reads admit any role (bearer token or API key); create / update need
``manager`` or ``admin``; delete needs ``admin``.  All lookups are filtered by
the caller's organization, so another tenant's project is a plain 404.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from app.auth.errors import InternalError, NotFound
from app.auth.pipeline import RequestContext, bearer_or_api_key, bearer_token, guard
from app.auth.roles import allow_roles
from app.schemas.projects import ProjectCreate, ProjectOut, ProjectUpdate
from app.services import project_service

router = APIRouter()

any_member = guard(bearer_or_api_key, allow_roles("user", "manager", "admin"))
editors = guard(bearer_token, allow_roles("manager", "admin"))
admin_only = guard(bearer_token, allow_roles("admin"))

PROJECT_NOT_FOUND = "Project not found."


@router.get("", response_model=list[ProjectOut])
async def list_projects(ctx: RequestContext = Depends(any_member)):
    try:
        return await project_service.list_projects(ctx.db, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to list projects.", error=str(exc)) from exc


@router.post("", response_model=ProjectOut, status_code=201)
async def create_project(body: ProjectCreate, ctx: RequestContext = Depends(editors)):
    try:
        proj = await project_service.create_project(
            ctx.db,
            ctx.principal.organization_id,
            body.name,
            body.description,
            created_by=ctx.principal.user_id,
        )
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to create project.", error=str(exc)) from exc
    return proj


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, ctx: RequestContext = Depends(any_member)):
    try:
        proj = await project_service.get_project(ctx.db, project_id, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to get project.", error=str(exc)) from exc
    if not proj:
        raise NotFound(PROJECT_NOT_FOUND)
    return proj


@router.put("/{project_id}", response_model=ProjectOut)
async def update_project(project_id: str, body: ProjectUpdate, ctx: RequestContext = Depends(editors)):
    try:
        proj = await project_service.update_project(
            ctx.db, project_id, ctx.principal.organization_id, body.name, body.description
        )
        if not proj:
            raise NotFound(PROJECT_NOT_FOUND)
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to update project.", error=str(exc)) from exc
    return proj


@router.delete("/{project_id}", status_code=204)
async def delete_project(project_id: str, ctx: RequestContext = Depends(admin_only)):
    try:
        deleted = await project_service.delete_project(ctx.db, project_id, ctx.principal.organization_id)
        if not deleted:
            raise NotFound(PROJECT_NOT_FOUND)
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to delete project.", error=str(exc)) from exc
    return None
