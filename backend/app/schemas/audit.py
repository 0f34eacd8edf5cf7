"""Pydantic models for audit log listings."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditEntryOut(BaseModel):
    id: str
    event: str
    user_id: str | None = None
    organization_id: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditPage(BaseModel):
    entries: list[AuditEntryOut]
    limit: int
    offset: int
