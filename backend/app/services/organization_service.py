"""Organization lookups and renames.

Callers reach an organization only through their own id (the tenant gate on
the route has already compared it with the principal).
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Organization


class DuplicateOrganizationError(Exception):
    pass


async def get_organization(db: AsyncSession, organization_id: str) -> Organization | None:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    return result.scalar_one_or_none()


async def rename_organization(db: AsyncSession, organization_id: str, name: str) -> Organization | None:
    org = await get_organization(db, organization_id)
    if org is None:
        return None
    clash = await db.execute(
        select(Organization.id).where(Organization.name == name, Organization.id != organization_id)
    )
    if clash.scalar_one_or_none() is not None:
        raise DuplicateOrganizationError(name)
    org.name = name
    await db.flush()
    await db.refresh(org)
    return org
