"""Organization API. A caller only ever sees their own organization.

The path id is compared with the principal's organization before any lookup
(``same_tenant``), so probing another tenant's id yields the generic
organization-mismatch response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.auth.errors import InternalError, NotFound
from app.auth.pipeline import RequestContext, bearer_token, guard
from app.auth.roles import allow_roles
from app.auth.tenancy import same_tenant
from app.schemas.users import OrganizationOut, OrganizationUpdate
from app.services import audit_service, organization_service

router = APIRouter(tags=["organizations"])

ORG_NOT_FOUND = "Organization not found."


@router.get("/{organization_id}", response_model=OrganizationOut)
async def get_organization(
    organization_id: str,
    ctx: RequestContext = Depends(
        guard(bearer_token, allow_roles("user", "manager", "admin"), same_tenant("organization_id"))
    ),
):
    try:
        org = await organization_service.get_organization(ctx.db, organization_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to get organization.", error=str(exc)) from exc
    if not org:
        raise NotFound(ORG_NOT_FOUND)
    return org


@router.put("/{organization_id}", response_model=OrganizationOut)
async def update_organization(
    organization_id: str,
    body: OrganizationUpdate,
    ctx: RequestContext = Depends(
        guard(bearer_token, allow_roles("admin"), same_tenant("organization_id"))
    ),
):
    try:
        org = await organization_service.rename_organization(ctx.db, organization_id, body.name)
        if not org:
            raise NotFound(ORG_NOT_FOUND)
        await ctx.db.commit()
    except (organization_service.DuplicateOrganizationError, IntegrityError):
        raise HTTPException(status_code=409, detail="Organization already exists.")
    except SQLAlchemyError as exc:
        raise InternalError("Failed to update organization.", error=str(exc)) from exc
    audit_service.log_admin_action(
        action="update_organization",
        user_id=ctx.principal.user_id,
        organization_id=org.id,
        details={"orgId": org.id, "name": org.name},
    )
    return org
