"""create crm accounts notes attachments and team links

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19 09:05:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190002"
down_revision: str | None = "202610190001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "crm_account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Active"),
        sa.Column("owner_user_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_account_owner_user_id", "crm_account", ["owner_user_id"], unique=False)

    op.create_table(
        "crm_note",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("parent_type", sa.String(length=64), nullable=True),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("related_type", sa.String(length=64), nullable=True),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column("target_type", sa.String(length=32), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("owner_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_note_parent", "crm_note", ["parent_type", "parent_id"], unique=False)

    op.create_table(
        "crm_note_user",
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["note_id"], ["crm_note.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("note_id", "user_id"),
    )
    op.create_index("ix_crm_note_user_user_id", "crm_note_user", ["user_id"], unique=False)

    op.create_table(
        "crm_attachment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("parent_type", sa.String(length=64), nullable=True),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("related_type", sa.String(length=64), nullable=True),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column("field", sa.String(length=128), nullable=True),
        sa.Column("file_id", sa.Uuid(), nullable=True),
        sa.Column("owner_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_attachment_parent", "crm_attachment", ["parent_type", "parent_id"], unique=False)
    op.create_index("ix_crm_attachment_related", "crm_attachment", ["related_type", "related_id"], unique=False)

    op.create_table(
        "crm_entity_team",
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("entity_type", "entity_id", "team_id"),
    )
    op.create_index("ix_crm_entity_team_team_id", "crm_entity_team", ["team_id"], unique=False)

    op.create_table(
        "crm_user_team",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "team_id"),
    )
    op.create_index("ix_crm_user_team_user_id", "crm_user_team", ["user_id", "position"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_crm_user_team_user_id", table_name="crm_user_team")
    op.drop_table("crm_user_team")
    op.drop_index("ix_crm_entity_team_team_id", table_name="crm_entity_team")
    op.drop_table("crm_entity_team")
    op.drop_index("ix_crm_attachment_related", table_name="crm_attachment")
    op.drop_index("ix_crm_attachment_parent", table_name="crm_attachment")
    op.drop_table("crm_attachment")
    op.drop_index("ix_crm_note_user_user_id", table_name="crm_note_user")
    op.drop_table("crm_note_user")
    op.drop_index("ix_crm_note_parent", table_name="crm_note")
    op.drop_table("crm_note")
    op.drop_index("ix_crm_account_owner_user_id", table_name="crm_account")
    op.drop_table("crm_account")
