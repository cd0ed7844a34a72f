"""Initial database schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the jobs and output_files tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("job_id", sa.String(36), primary_key=True),
        sa.Column("source_item_id", sa.String(100), nullable=False, index=True),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("device_id", sa.String(100), nullable=True, index=True),
        sa.Column("source_path", sa.String(1024), nullable=False),
        sa.Column("output_path", sa.String(1024), nullable=False),
        sa.Column("progress", sa.Float, nullable=True),
        sa.Column("current_fps", sa.Float, nullable=True),
        sa.Column("current_bitrate", sa.Float, nullable=True),
        sa.Column("time_remaining", sa.Float, nullable=True),
        sa.Column("file_size", sa.BigInteger, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("completed_at", sa.DateTime, nullable=True),
    )

    # No foreign key to jobs: file records outlive a cache clear
    op.create_table(
        "output_files",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("source_item_id", sa.String(100), nullable=False, index=True),
        sa.Column("job_id", sa.String(36), nullable=True, index=True),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("profile_name", sa.String(100), default=""),
        sa.Column("file_size", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("output_files")
    op.drop_table("jobs")
