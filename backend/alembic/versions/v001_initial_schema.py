"""Initial schema: organizations, users, projects, apikeys, auditlogs.

Revision ID: v001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "v001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(256), nullable=False),
        sa.Column("hashed_password", sa.Text, nullable=False),
        sa.Column("organization_id", sa.String(64), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="user"),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("organization_id", sa.String(64), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "apikeys",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("key", sa.String(256), nullable=False),
        sa.Column("organization_id", sa.String(64), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_apikeys_key", "apikeys", ["key"], unique=True)
    op.create_index("ix_apikeys_organization_id", "apikeys", ["organization_id"])

    op.create_table(
        "auditlogs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("event", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("organization_id", sa.String(64), nullable=True),
        sa.Column("details_json", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_auditlogs_event", "auditlogs", ["event"])
    op.create_index("ix_auditlogs_organization_id", "auditlogs", ["organization_id"])
    op.create_index("ix_auditlogs_created_at", "auditlogs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_auditlogs_created_at", "auditlogs")
    op.drop_index("ix_auditlogs_organization_id", "auditlogs")
    op.drop_index("ix_auditlogs_event", "auditlogs")
    op.drop_table("auditlogs")
    op.drop_index("ix_apikeys_organization_id", "apikeys")
    op.drop_index("ix_apikeys_key", "apikeys")
    op.drop_table("apikeys")
    op.drop_index("ix_projects_organization_id", "projects")
    op.drop_table("projects")
    op.drop_index("ix_users_organization_id", "users")
    op.drop_index("ix_users_email", "users")
    op.drop_table("users")
    op.drop_index("ix_organizations_name", "organizations")
    op.drop_table("organizations")
