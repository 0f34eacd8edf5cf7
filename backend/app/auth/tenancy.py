"""Tenant isolation gate.

Two halves:

- :func:`check_tenant` / :func:`same_tenant` compare the caller's organization
  with an organization id taken from the request itself (path, query or body)
  before any lookup happens.
- :func:`tenant_filter` is what services use for every lookup of an
  organization-scoped row: id *and* organization in one WHERE clause, so a row
  owned by another tenant is simply not found.  Fetching by id and comparing
  afterwards is never done.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from app.auth.errors import MissingCredential, TenantMismatch
from app.auth.principal import Principal
from app.utils.metrics import record_authz_denied

if TYPE_CHECKING:
    from app.auth.pipeline import RequestContext, Stage

logger = logging.getLogger("tenantgate.auth")


def check_tenant(principal: Principal, resource_organization_id: str | None) -> None:
    """Raise :class:`TenantMismatch` unless both organization ids are equal."""
    if resource_organization_id and str(resource_organization_id) == principal.organization_id:
        return
    logger.warning(
        "Tenant mismatch: principal org=%s resource org=%s (user=%s)",
        principal.organization_id,
        resource_organization_id,
        principal.user_id,
    )
    record_authz_denied("tenant")
    raise TenantMismatch()


def tenant_filter(model: Any, entity_id: str, organization_id: str) -> tuple:
    """WHERE criteria matching one row of *model* inside one organization."""
    return (model.id == entity_id, model.organization_id == organization_id)


def same_tenant(field: str = "organization_id") -> "Stage":
    """Return a pipeline stage checking *field* against the caller's organization.

    The value is looked up in path params, then query params, then the JSON
    body.  A request that carries no such value is treated as a mismatch.
    """

    async def _check_tenant(ctx: "RequestContext") -> "RequestContext":
        if ctx.principal is None:
            raise MissingCredential()
        request = ctx.request
        value: Any = request.path_params.get(field) or request.query_params.get(field)
        if value is None and request.method in ("POST", "PUT", "PATCH"):
            try:
                body = await request.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                body = None
            if isinstance(body, dict):
                value = body.get(field)
        check_tenant(ctx.principal, value)
        return ctx

    _check_tenant.__name__ = f"same_tenant({field})"
    return _check_tenant
