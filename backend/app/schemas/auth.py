"""Pydantic models for registration, login and identity."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.services.user_service import PASSWORD_MAX_BYTES


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    organization: str = Field(min_length=1, max_length=256)
    name: str | None = None
    role: str | None = None

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > PASSWORD_MAX_BYTES:
            raise ValueError(f"must be at most {PASSWORD_MAX_BYTES} bytes")
        return value

    @field_validator("organization", mode="before")
    @classmethod
    def _strip_organization(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserSummary(BaseModel):
    id: str
    email: str
    role: str
    organization_id: str
    name: str | None = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSummary


class MeResponse(BaseModel):
    user_id: str | None
    role: str
    organization_id: str
