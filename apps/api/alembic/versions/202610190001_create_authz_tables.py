"""create acl role and permission tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "acl_role",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "acl_permission",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("resource", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("field", sa.String(length=128), nullable=True),
        sa.Column("scope_type", sa.String(length=16), nullable=True),
        sa.Column("scope_value", sa.String(length=16), nullable=True),
        sa.Column("effect", sa.String(length=8), nullable=False, server_default="allow"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "resource",
            "action",
            "field",
            "scope_type",
            "scope_value",
            "effect",
            name="uq_acl_permission_rule",
        ),
        sa.CheckConstraint("effect IN ('allow', 'deny')", name="ck_acl_permission_effect"),
    )

    op.create_table(
        "acl_role_permission",
        sa.Column("role_id", sa.Uuid(), nullable=False),
        sa.Column("permission_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["permission_id"], ["acl_permission.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["acl_role.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )

    op.create_table(
        "acl_user_role",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("role_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["acl_role.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )

    op.create_index("ix_acl_permission_resource", "acl_permission", ["resource", "action"])
    op.create_index("ix_acl_role_permission_permission_id", "acl_role_permission", ["permission_id"])


def downgrade() -> None:
    op.drop_index("ix_acl_role_permission_permission_id", table_name="acl_role_permission")
    op.drop_index("ix_acl_permission_resource", table_name="acl_permission")
    op.drop_table("acl_user_role")
    op.drop_table("acl_role_permission")
    op.drop_table("acl_permission")
    op.drop_table("acl_role")
