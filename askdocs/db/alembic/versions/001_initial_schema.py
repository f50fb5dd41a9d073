"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates:
- organization, organization_membership
- document, document_chunk
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "organization",
        sa.Column("organization_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "organization_membership",
        sa.Column("membership_id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["organization_id"], ["organization.organization_id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_membership_user_org"),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name="ck_membership_role"),
    )
    op.create_index("idx_membership_user", "organization_membership", ["user_id"])

    op.create_table(
        "document",
        sa.Column("document_id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organization.organization_id"]),
        sa.CheckConstraint(
            "(visibility = 'organization' AND organization_id IS NOT NULL) OR "
            "(visibility = 'private' AND organization_id IS NULL)",
            name="ck_document_visibility_org",
        ),
    )
    op.create_index(
        "idx_document_owner_org_filename", "document", ["owner_id", "organization_id", "filename"]
    )

    op.create_table(
        "document_chunk",
        sa.Column("chunk_id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
    )
    op.create_index("idx_chunk_owner", "document_chunk", ["owner_id"])
    op.create_index("idx_chunk_org", "document_chunk", ["organization_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_chunk_org", table_name="document_chunk")
    op.drop_index("idx_chunk_owner", table_name="document_chunk")
    op.drop_table("document_chunk")
    op.drop_index("idx_document_owner_org_filename", table_name="document")
    op.drop_table("document")
    op.drop_index("idx_membership_user", table_name="organization_membership")
    op.drop_table("organization_membership")
    op.drop_table("organization")
