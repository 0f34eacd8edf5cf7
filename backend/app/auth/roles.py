"""Role authorization gate.

Usage::

    from app.auth.pipeline import bearer_token, guard
    from app.auth.roles import allow_roles

    @router.post("/projects")
    async def create_project(
        ...,
        ctx: RequestContext = Depends(guard(bearer_token, allow_roles("manager", "admin"))),
    ): ...

There is no role hierarchy: ``admin`` only passes a gate that lists ``admin``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from app.auth.errors import Forbidden, MissingCredential
from app.auth.principal import VALID_ROLES, Principal
from app.utils.metrics import record_authz_denied

if TYPE_CHECKING:
    from app.auth.pipeline import RequestContext, Stage

logger = logging.getLogger("tenantgate.auth")


def authorize(principal: Principal, allowed_roles: Iterable[str]) -> None:
    """Raise :class:`Forbidden` unless ``principal.role`` is in *allowed_roles*."""
    allowed = frozenset(allowed_roles)
    if principal.role in allowed:
        return
    logger.warning(
        "Access denied: role '%s' not in %s (user=%s org=%s)",
        principal.role,
        sorted(allowed),
        principal.user_id,
        principal.organization_id,
    )
    record_authz_denied("role")
    raise Forbidden()


def allow_roles(*roles: str) -> "Stage":
    """Return a pipeline stage enforcing a static allow-list."""
    unknown = set(roles) - set(VALID_ROLES)
    if not roles or unknown:
        raise ValueError(f"allow_roles needs roles from {VALID_ROLES}, got {roles}")
    allowed = frozenset(roles)

    async def _check_role(ctx: "RequestContext") -> "RequestContext":
        if ctx.principal is None:
            raise MissingCredential()
        authorize(ctx.principal, allowed)
        return ctx

    _check_role.__name__ = f"allow_roles({', '.join(sorted(allowed))})"
    return _check_role
