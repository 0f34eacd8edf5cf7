"""API key administration.

Endpoints
---------
POST /api/apikeys              generate a key for the caller's organization (admin)
GET  /api/apikeys              list the organization's keys, revoked included (admin)
POST /api/apikeys/{id}/revoke  revoke a key (admin)
POST /api/apikeys/{id}/rotate  replace a key's secret (admin)

Audit entries are recorded only after the change has been committed.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError

from app.auth.errors import InternalError, NotFound
from app.auth.pipeline import RequestContext, bearer_token, guard
from app.auth.roles import allow_roles
from app.schemas.apikeys import ApiKeyOut, ApiKeySecret
from app.services import apikey_service, audit_service

logger = logging.getLogger("tenantgate.api.apikeys")
router = APIRouter(tags=["apikeys"])

admin_only = guard(bearer_token, allow_roles("admin"))


def _audit(ctx: RequestContext, action: str, api_key_id: str) -> None:
    principal = ctx.principal
    audit_service.log_api_key_usage(
        api_key_id=api_key_id,
        organization_id=principal.organization_id,
        user_id=principal.user_id,
        endpoint=ctx.request.url.path,
    )
    audit_service.log_admin_action(
        action=action,
        user_id=principal.user_id,
        organization_id=principal.organization_id,
        details={"apiKeyId": api_key_id},
    )


@router.post("", response_model=ApiKeySecret, status_code=status.HTTP_201_CREATED)
async def generate_key(ctx: RequestContext = Depends(admin_only)):
    try:
        api_key = await apikey_service.generate_key(ctx.db, ctx.principal.organization_id)
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to generate API key.", error=str(exc)) from exc
    _audit(ctx, "generate_api_key", api_key.id)
    return ApiKeySecret.model_validate(api_key)


@router.get("", response_model=list[ApiKeyOut])
async def list_keys(ctx: RequestContext = Depends(admin_only)):
    try:
        keys = await apikey_service.list_keys(ctx.db, ctx.principal.organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to list API keys.", error=str(exc)) from exc
    return [ApiKeyOut.from_row(k) for k in keys]


@router.post("/{key_id}/revoke", response_model=ApiKeyOut)
async def revoke_key(key_id: str, ctx: RequestContext = Depends(admin_only)):
    try:
        api_key = await apikey_service.revoke_key(ctx.db, key_id, ctx.principal.organization_id)
        if api_key is None:
            raise NotFound("API key not found.")
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to revoke API key.", error=str(exc)) from exc
    _audit(ctx, "revoke_api_key", api_key.id)
    return ApiKeyOut.from_row(api_key)


@router.post("/{key_id}/rotate", response_model=ApiKeySecret)
async def rotate_key(key_id: str, ctx: RequestContext = Depends(admin_only)):
    try:
        api_key = await apikey_service.rotate_key(ctx.db, key_id, ctx.principal.organization_id)
        if api_key is None:
            raise NotFound("API key not found or revoked.")
        await ctx.db.commit()
    except SQLAlchemyError as exc:
        raise InternalError("Failed to rotate API key.", error=str(exc)) from exc
    _audit(ctx, "rotate_api_key", api_key.id)
    return ApiKeySecret.model_validate(api_key)
