"""Per-route request pipelines.

A *stage* is an async function ``(RequestContext) -> RequestContext`` that
either returns a (possibly enriched) context or raises an
:class:`~app.auth.errors.AuthError`.  Routes declare their chain explicitly::

    ctx: RequestContext = Depends(guard(bearer_token, allow_roles("admin")))

Stages run strictly in the given order and the first failure short-circuits
the rest, so the resource handler only ever runs with exactly one resolved
:class:`Principal`.  Credential stages:

- :func:`bearer_token`: ``Authorization: Bearer <token>``
- :func:`api_key`: ``x-api-key: <hex>``
- :func:`bearer_or_api_key`: API key when the header is present, bearer otherwise

Gate stages live in :mod:`app.auth.roles` and :mod:`app.auth.tenancy`.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, replace

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.errors import InvalidCredential, MissingCredential
from app.auth.principal import Principal
from app.auth.tokens import verify_token
from app.config import settings
from app.db.engine import get_db
from app.services import apikey_service, audit_service
from app.utils.logger import bind_principal
from app.utils.metrics import record_auth_failure, record_auth_success

logger = logging.getLogger("tenantgate.auth")

API_KEY_HEADER = "x-api-key"


@dataclass(frozen=True)
class RequestContext:
    request: Request
    db: AsyncSession
    principal: Principal | None = None
    api_key_id: str | None = None


Stage = Callable[[RequestContext], Awaitable[RequestContext]]


# ── Credential stages ─────────────────────────────────────────────


async def bearer_token(ctx: RequestContext) -> RequestContext:
    header = ctx.request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        record_auth_failure("bearer", "missing")
        raise MissingCredential("Access token required.", headers={"WWW-Authenticate": "Bearer"})
    try:
        principal = verify_token(token.strip())
    except InvalidCredential:
        record_auth_failure("bearer", "invalid")
        raise
    record_auth_success("bearer")
    bind_principal(principal.organization_id, principal.user_id)
    return replace(ctx, principal=principal)


async def api_key(ctx: RequestContext) -> RequestContext:
    raw_key = ctx.request.headers.get(API_KEY_HEADER)
    if not raw_key:
        record_auth_failure("api_key", "missing")
        raise MissingCredential("API key missing.")
    try:
        row = await apikey_service.validate_key(ctx.db, raw_key.strip())
    except InvalidCredential:
        record_auth_failure("api_key", "invalid")
        logger.info("Rejected API key on %s %s", ctx.request.method, ctx.request.url.path)
        raise
    principal = Principal(role=settings.API_KEY_ROLE, organization_id=row.organization_id)
    record_auth_success("api_key")
    bind_principal(principal.organization_id, None)
    return replace(ctx, principal=principal, api_key_id=row.id)


async def bearer_or_api_key(ctx: RequestContext) -> RequestContext:
    # A present x-api-key header always decides: an unknown key is rejected
    # even when a valid bearer token rides along.
    if API_KEY_HEADER in ctx.request.headers:
        return await api_key(ctx)
    return await bearer_token(ctx)


# ── Composition ───────────────────────────────────────────────────


def guard(*stages: Stage):
    """Return a FastAPI dependency running *stages* in order.

    The first stage must resolve the principal; a chain that ends without one
    is rejected with :class:`MissingCredential`.

    When the principal came from an API key, an ``api_key_usage`` entry is
    scheduled once the handler has returned.  A failing stage or handler
    raises through the ``yield`` and records nothing.
    """
    if not stages:
        raise ValueError("guard() needs at least one stage")

    async def _run(request: Request, db: AsyncSession = Depends(get_db)) -> AsyncIterator[RequestContext]:
        ctx = RequestContext(request=request, db=db)
        for stage in stages:
            ctx = await stage(ctx)
        if ctx.principal is None:
            raise MissingCredential()
        yield ctx
        if ctx.api_key_id is not None:
            audit_service.log_api_key_usage(
                api_key_id=ctx.api_key_id,
                organization_id=ctx.principal.organization_id,
                endpoint=request.url.path,
            )

    _run.__name__ = "guard(" + ", ".join(getattr(s, "__name__", repr(s)) for s in stages) + ")"
    return _run
