"""Create RBAC, edge and Legalpad document tables.

Revision ID: a7c3e9d1f2b4
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a7c3e9d1f2b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phid", sa.String(64), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "edges",
        sa.Column("src", sa.String(64), primary_key=True),
        sa.Column("type", sa.String(64), primary_key=True),
        sa.Column("dst", sa.String(64), primary_key=True),
        sa.Column("date_created", sa.DateTime(timezone=False), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("idx_edges_dst_type", "edges", ["dst", "type"])

    op.create_table(
        "legalpad_documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phid", sa.String(64), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("creator_phid", sa.String(64), nullable=False),
        sa.Column("document_body_phid", sa.String(64), nullable=False),
        sa.Column("versions", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("contributor_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("date_created", sa.DateTime(timezone=False), nullable=False),
        sa.Column("date_modified", sa.DateTime(timezone=False), nullable=False),
    )
    op.create_index("idx_legalpad_documents_creator", "legalpad_documents", ["creator_phid"])
    op.create_index("idx_legalpad_documents_created", "legalpad_documents", ["date_created"])

    op.create_table(
        "legalpad_document_bodies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phid", sa.String(64), nullable=False, unique=True),
        sa.Column("creator_phid", sa.String(64), nullable=False),
        sa.Column("document_phid", sa.String(64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("date_created", sa.DateTime(timezone=False), nullable=False),
    )

    op.create_table(
        "legalpad_document_signatures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_phid", sa.String(64), nullable=False),
        sa.Column("document_version", sa.Integer(), nullable=False),
        sa.Column("signer_phid", sa.String(64), nullable=False),
        sa.Column("signature_json", sa.Text(), nullable=True),
        sa.Column("date_created", sa.DateTime(timezone=False), nullable=False),
    )
    op.create_index(
        "idx_legalpad_signatures_document",
        "legalpad_document_signatures",
        ["document_phid", "document_version"],
    )
    op.create_index("idx_legalpad_signatures_signer", "legalpad_document_signatures", ["signer_phid"])


def downgrade() -> None:
    op.drop_index("idx_legalpad_signatures_signer", table_name="legalpad_document_signatures")
    op.drop_index("idx_legalpad_signatures_document", table_name="legalpad_document_signatures")
    op.drop_table("legalpad_document_signatures")
    op.drop_table("legalpad_document_bodies")
    op.drop_index("idx_legalpad_documents_created", table_name="legalpad_documents")
    op.drop_index("idx_legalpad_documents_creator", table_name="legalpad_documents")
    op.drop_table("legalpad_documents")
    op.drop_index("idx_edges_dst_type", table_name="edges")
    op.drop_table("edges")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
