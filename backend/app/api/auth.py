"""Authentication API: registration, login and identity.

Endpoints
---------
POST /api/auth/register    create a user (and the organization when new) -> token
POST /api/auth/login       email + password -> token
GET  /api/auth/me          the principal resolved from the bearer token

Both token endpoints record ``login_success`` / ``login_failure`` audit events.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.errors import InternalError
from app.auth.pipeline import RequestContext, bearer_token, guard
from app.auth.tokens import issue_token
from app.config import settings
from app.db.engine import get_db
from app.db.models import User
from app.schemas.auth import LoginRequest, MeResponse, RegisterRequest, TokenResponse, UserSummary
from app.services import audit_service, user_service
from app.utils.metrics import record_auth_failure, record_auth_success

logger = logging.getLogger("tenantgate.auth")
router = APIRouter()


def _token_response(user: User) -> TokenResponse:
    token = issue_token(user.id, user.role, user.organization_id)
    return TokenResponse(
        token=token,
        expires_in=settings.AUTH_TOKEN_EXPIRE_HOURS * 3600,
        user=UserSummary.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    try:
        user, org = await user_service.register(
            db,
            email=body.email,
            password=body.password,
            organization=body.organization,
            name=body.name,
            role=body.role,
        )
        await db.commit()
    except (user_service.DuplicateUserError, IntegrityError):
        audit_service.log_login_attempt(email=body.email, success=False)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists.")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise InternalError("Registration failed.", error=str(exc)) from exc

    audit_service.log_login_attempt(
        email=user.email, success=True, user_id=user.id, organization_id=org.id
    )
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    try:
        user, ok = await user_service.authenticate(db, body.email, body.password)
    except SQLAlchemyError as exc:
        raise InternalError("Login failed.", error=str(exc)) from exc

    if not ok:
        record_auth_failure("password", "invalid")
        audit_service.log_login_attempt(
            email=body.email,
            success=False,
            user_id=user.id if user else None,
            organization_id=user.organization_id if user else None,
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")

    record_auth_success("password")
    logger.info("Login: user=%s role='%s' org=%s", user.id, user.role, user.organization_id)
    audit_service.log_login_attempt(
        email=user.email, success=True, user_id=user.id, organization_id=user.organization_id
    )
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
async def me(ctx: RequestContext = Depends(guard(bearer_token))) -> MeResponse:
    principal = ctx.principal
    return MeResponse(
        user_id=principal.user_id,
        role=principal.role,
        organization_id=principal.organization_id,
    )
