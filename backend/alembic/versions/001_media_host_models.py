"""Media host models migration.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Accounts, streaming hosts, folders, videos, playlist entries and conversion jobs.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, onupdate: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now() if onupdate else None,
        nullable=False,
    )


def upgrade() -> None:
    """Create media host tables."""
    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("bitrate_ceiling_kbps", sa.Integer(), nullable=True),
        sa.Column("storage_quota_mb", sa.Integer(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"])

    op.create_table(
        "streaming_hosts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("ssh_port", sa.Integer(), nullable=False, server_default="22"),
        sa.Column("ssh_user", sa.String(64), nullable=False, server_default="root"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("active_streams", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cpu_load", sa.Float(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
    )
    op.create_index("ix_streaming_hosts_status", "streaming_hosts", ["status"])

    op.create_table(
        "folders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "host_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("streaming_hosts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quota_mb", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("used_mb", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.UniqueConstraint("account_id", "name", name="uq_folders_account_name"),
    )
    op.create_index("ix_folders_account_id", "folders", ["account_id"])

    op.create_table(
        "videos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "folder_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("folders.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(1024), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("bitrate_kbps", sa.Integer(), nullable=True),
        sa.Column("original_format", sa.String(20), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("is_mp4", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_compatible", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("conversion_label", sa.String(100), nullable=True),
        sa.Column(
            "source_video_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("videos.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
    )
    op.create_index("ix_videos_account_id", "videos", ["account_id"])
    op.create_index("ix_videos_folder_id", "videos", ["folder_id"])

    op.create_table(
        "playlist_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("playlist_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("video_path", sa.String(1024), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
    )
    op.create_index("ix_playlist_entries_account_id", "playlist_entries", ["account_id"])
    op.create_index("ix_playlist_entries_playlist_id", "playlist_entries", ["playlist_id"])

    op.create_table(
        "conversion_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "video_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("videos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "host_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("streaming_hosts.id"),
            nullable=False,
        ),
        sa.Column("target_bitrate", sa.Integer(), nullable=False),
        sa.Column("target_width", sa.Integer(), nullable=False),
        sa.Column("target_height", sa.Integer(), nullable=False),
        sa.Column("quality_tier", sa.String(20), nullable=False),
        sa.Column("quality_label", sa.String(100), nullable=False),
        sa.Column("source_path", sa.String(2048), nullable=False),
        sa.Column("output_path", sa.String(2048), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "output_video_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("videos.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "video_id", "target_bitrate", name="uq_conversion_jobs_video_bitrate"
        ),
    )
    op.create_index("ix_conversion_jobs_account_id", "conversion_jobs", ["account_id"])
    op.create_index("ix_conversion_jobs_video_id", "conversion_jobs", ["video_id"])
    op.create_index("ix_conversion_jobs_status", "conversion_jobs", ["status"])


def downgrade() -> None:
    """Drop media host tables."""
    op.drop_index("ix_conversion_jobs_status", table_name="conversion_jobs")
    op.drop_index("ix_conversion_jobs_video_id", table_name="conversion_jobs")
    op.drop_index("ix_conversion_jobs_account_id", table_name="conversion_jobs")
    op.drop_table("conversion_jobs")
    op.drop_index("ix_playlist_entries_playlist_id", table_name="playlist_entries")
    op.drop_index("ix_playlist_entries_account_id", table_name="playlist_entries")
    op.drop_table("playlist_entries")
    op.drop_index("ix_videos_folder_id", table_name="videos")
    op.drop_index("ix_videos_account_id", table_name="videos")
    op.drop_table("videos")
    op.drop_index("ix_folders_account_id", table_name="folders")
    op.drop_table("folders")
    op.drop_index("ix_streaming_hosts_status", table_name="streaming_hosts")
    op.drop_table("streaming_hosts")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
