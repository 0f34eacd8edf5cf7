"""Users management API. Admins of an organization manage their own users.

Endpoints
---------
GET /api/users                 list users of the caller's organization (admin)
GET /api/users/{id}            get one user of the caller's organization (admin)
PUT /api/users/{id}/role       change a user's role (admin)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.auth.errors import InternalError, NotFound
from app.auth.pipeline import RequestContext, bearer_token, guard
from app.auth.roles import allow_roles
from app.schemas.users import RoleUpdate, UserOut
from app.services import audit_service, user_service

logger = logging.getLogger("tenantgate.api.users")
router = APIRouter(tags=["users"])

admin_only = guard(bearer_token, allow_roles("admin"))


@router.get("", response_model=list[UserOut])
async def list_users(ctx: RequestContext = Depends(admin_only)):
    try:
        return await user_service.list_users(ctx.db, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to list users.", error=str(exc)) from exc


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: str, ctx: RequestContext = Depends(admin_only)):
    try:
        user = await user_service.get_user(ctx.db, user_id, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to get user.", error=str(exc)) from exc
    if not user:
        raise NotFound("User not found.")
    return user


@router.put("/{user_id}/role", response_model=UserOut)
async def update_role(user_id: str, body: RoleUpdate, ctx: RequestContext = Depends(admin_only)):
    principal = ctx.principal
    try:
        user = await user_service.set_role(ctx.db, user_id, principal.organization_id, body.role)
        if not user:
            raise NotFound("User not found.")
        await ctx.db.commit()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise InternalError("Failed to update user.", error=str(exc)) from exc
    # Takes effect on the user's next token: issued tokens keep their role claim.
    audit_service.log_admin_action(
        action="update_user_role",
        user_id=principal.user_id,
        organization_id=principal.organization_id,
        details={"targetUserId": user.id, "role": user.role},
    )
    return user
