"""AuthN / AuthZ / tenancy core.

Supported credential schemes
-----------------------------
1. ``Authorization: Bearer <jwt>``
   HS256-signed token issued by ``/api/auth/login`` and ``/api/auth/register``.
   Claims: ``userId``, ``role``, ``organizationId``; valid for 24 hours.

2. ``x-api-key: <hex>``
   Opaque key created through ``/api/apikeys`` and bound to one organization.
   Grants ``settings.API_KEY_ROLE``.

Roles are a closed set (``user``, ``manager``, ``admin``) with no hierarchy:
each route lists every role it admits.  Every organization-scoped lookup is
filtered by id *and* organization (see :mod:`app.auth.tenancy`).
"""

from app.auth.errors import (
    AuthError,
    Forbidden,
    InternalError,
    InvalidCredential,
    MissingCredential,
    NotFound,
    TenantMismatch,
)
from app.auth.pipeline import RequestContext, api_key, bearer_or_api_key, bearer_token, guard
from app.auth.principal import VALID_ROLES, Principal
from app.auth.roles import allow_roles, authorize
from app.auth.tenancy import check_tenant, same_tenant, tenant_filter

__all__ = [
    "AuthError",
    "Forbidden",
    "InternalError",
    "InvalidCredential",
    "MissingCredential",
    "NotFound",
    "Principal",
    "RequestContext",
    "TenantMismatch",
    "VALID_ROLES",
    "allow_roles",
    "api_key",
    "authorize",
    "bearer_or_api_key",
    "bearer_token",
    "check_tenant",
    "guard",
    "same_tenant",
    "tenant_filter",
]
