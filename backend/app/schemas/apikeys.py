"""Pydantic models for API keys."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from app.db.models import ApiKey


class ApiKeyOut(BaseModel):
    """Listing shape. The secret itself is never echoed back."""

    id: str
    key_preview: str
    organization_id: str
    created_at: datetime
    revoked: bool
    last_used_at: datetime | None = None

    @classmethod
    def from_row(cls, row: ApiKey) -> "ApiKeyOut":
        return cls(
            id=row.id,
            key_preview=row.preview,
            organization_id=row.organization_id,
            created_at=row.created_at,
            revoked=row.revoked,
            last_used_at=row.last_used_at,
        )


class ApiKeySecret(BaseModel):
    """Returned by generate and rotate only: the one time the full key is shown."""

    id: str
    key: str
    organization_id: str
    created_at: datetime

    model_config = {"from_attributes": True}
