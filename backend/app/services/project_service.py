"""Project CRUD service, always scoped to one organization."""

from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.tenancy import tenant_filter
from app.db.models import Project


async def list_projects(db: AsyncSession, organization_id: str) -> list[Project]:
    result = await db.execute(
        select(Project).where(Project.organization_id == organization_id).order_by(Project.name)
    )
    return list(result.scalars().all())


async def get_project(db: AsyncSession, project_id: str, organization_id: str) -> Project | None:
    result = await db.execute(
        select(Project)
        .where(*tenant_filter(Project, project_id, organization_id))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_project(
    db: AsyncSession,
    organization_id: str,
    name: str,
    description: str | None = None,
    created_by: str | None = None,
) -> Project:
    proj = Project(name=name, description=description, organization_id=organization_id, created_by=created_by)
    db.add(proj)
    await db.flush()
    await db.refresh(proj)
    return proj


async def update_project(
    db: AsyncSession,
    project_id: str,
    organization_id: str,
    name: str | None = None,
    description: str | None = None,
) -> Project | None:
    values: dict[str, str] = {}
    if name is not None:
        values["name"] = name
    if description is not None:
        values["description"] = description
    if values:
        await db.execute(
            update(Project)
            .where(*tenant_filter(Project, project_id, organization_id))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    return await get_project(db, project_id, organization_id)


async def delete_project(db: AsyncSession, project_id: str, organization_id: str) -> bool:
    result = await db.execute(
        delete(Project)
        .where(*tenant_filter(Project, project_id, organization_id))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0
