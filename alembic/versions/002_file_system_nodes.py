"""Add file_system_nodes graph table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "file_system_nodes",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("parent_id", sa.String(64), nullable=True),
        sa.Column("created", sa.String(40), nullable=False),
        sa.Column("modified", sa.String(40), nullable=False),
        sa.Column("code", sa.Text(), nullable=True),
        sa.Column("is_multitrack", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("steps", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
        sa.Column("active_step", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["parent_id"], ["file_system_nodes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_file_system_nodes_user_id"), "file_system_nodes", ["user_id"], unique=False)
    op.create_index(op.f("ix_file_system_nodes_parent_id"), "file_system_nodes", ["parent_id"], unique=False)
    op.create_index(
        "ix_file_system_nodes_user_parent", "file_system_nodes", ["user_id", "parent_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("file_system_nodes")
