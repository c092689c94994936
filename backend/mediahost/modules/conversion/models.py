"""Conversion job model.

One job per (source video, target bitrate). The worker task moves the job
through its states so a failed conversion can be told apart from a running
one.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mediahost.core.database import Base


class ConversionJobStatus(str, Enum):
    """Status of a conversion job."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class ConversionJob(Base):
    """Model for video conversion jobs."""

    __tablename__ = "conversion_jobs"
    __table_args__ = (
        UniqueConstraint("video_id", "target_bitrate", name="uq_conversion_jobs_video_bitrate"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    video_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    host_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("streaming_hosts.id"), nullable=False
    )

    # Target settings
    target_bitrate: Mapped[int] = mapped_column(Integer, nullable=False)
    target_width: Mapped[int] = mapped_column(Integer, nullable=False)
    target_height: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    quality_label: Mapped[str] = mapped_column(String(100), nullable=False)

    # Remote paths at the time the job was created
    source_path: Mapped[str] = mapped_column(String(2048), nullable=False)
    output_path: Mapped[str] = mapped_column(String(2048), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=ConversionJobStatus.PENDING.value, nullable=False, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    output_video_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("videos.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def conversion_id(self) -> str:
        return f"{self.video_id}_{self.target_bitrate}"

    @property
    def target_resolution(self) -> str:
        return f"{self.target_width}x{self.target_height}"

    def is_active(self) -> bool:
        """Check if the job is queued or converting."""
        return self.status in (
            ConversionJobStatus.PENDING.value,
            ConversionJobStatus.RUNNING.value,
        )

    def __repr__(self) -> str:
        return f"<ConversionJob(id={self.id}, video_id={self.video_id}, status={self.status})>"
