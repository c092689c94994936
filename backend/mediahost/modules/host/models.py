"""Streaming host models.

A host is a streaming server reachable over SSH that stores the content
directories of the folders assigned to it.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mediahost.core.database import Base


class HostStatus(str, Enum):
    """Operational status of a streaming host."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class StreamingHost(Base):
    """Streaming server that holds account content directories."""

    __tablename__ = "streaming_hosts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    # SSH connection (credentials come from settings)
    ssh_port: Mapped[int] = mapped_column(Integer, default=22, nullable=False)
    ssh_user: Mapped[str] = mapped_column(String(64), default="root", nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=HostStatus.ACTIVE.value, nullable=False, index=True
    )

    # Load tracking
    active_streams: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cpu_load: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def is_active(self) -> bool:
        """Check if the host accepts new folders and commands."""
        return self.status == HostStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<StreamingHost(id={self.id}, name={self.name}, status={self.status})>"
