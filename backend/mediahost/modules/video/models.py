"""Video catalog and playlist reference models."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mediahost.core.database import Base


class Video(Base):
    """A video file stored in a folder.

    Only the folder-relative ``file_name`` is stored; the full remote path is
    computed from the account login and folder name. A converted video is a
    row of its own pointing back at its source.
    """

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    folder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("folders.id"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Media properties
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)  # bytes
    bitrate_kbps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    original_format: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_mp4: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_compatible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Set on converted rows only
    conversion_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    source_video_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("videos.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None

    @property
    def is_conversion(self) -> bool:
        return self.conversion_label is not None

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, name={self.name}, folder_id={self.folder_id})>"


class PlaylistEntry(Base):
    """A playlist item referring to a video by content-relative path.

    Paths have the form ``<login>/<folder>/<file>``.
    """

    __tablename__ = "playlist_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    playlist_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    video_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
