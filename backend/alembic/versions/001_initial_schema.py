"""Initial schema - users, documents, signature requests

Revision ID: 0001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Auth ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, index=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── Documents ─────────────────────────────────────────────────────
    op.create_table(
        "documents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("filename", sa.String(500), nullable=False),
        sa.Column("storage_key", sa.String(1000), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("page_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── Signatures ────────────────────────────────────────────────────
    op.execute("CREATE TYPE signaturerequeststatus AS ENUM ('pending', 'signed', 'rejected')")

    op.create_table(
        "signature_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "document_id",
            UUID(as_uuid=True),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("signer_email", sa.String(255), nullable=False, index=True),
        sa.Column("token", sa.String(255), unique=True, index=True, nullable=False),
        sa.Column(
            "status",
            ENUM("pending", "signed", "rejected", name="signaturerequeststatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("signed_by", sa.String(255), nullable=True),
        sa.Column("rejected_by", sa.String(255), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_pages", sa.JSON(), nullable=True),
        sa.Column("signed_document_key", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "placed_signatures",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "signature_request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("signature_requests.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("page", sa.Integer(), nullable=False),
        sa.Column("x", sa.Float(), nullable=False),
        sa.Column("y", sa.Float(), nullable=False),
        sa.Column("signature_text", sa.String(500), server_default="", nullable=False),
        sa.Column("font_size", sa.Integer(), server_default=sa.text("16"), nullable=False),
        sa.Column("font_family", sa.String(100), server_default="Arial", nullable=False),
        sa.Column("color", sa.String(50), server_default="#1E40AF", nullable=False),
        sa.Column("is_bold", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_underline", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.UniqueConstraint("signature_request_id", "page", name="uq_placed_signature_page"),
    )


def downgrade() -> None:
    op.drop_table("placed_signatures")
    op.drop_table("signature_requests")
    op.execute("DROP TYPE IF EXISTS signaturerequeststatus")
    op.drop_table("documents")
    op.drop_table("users")
