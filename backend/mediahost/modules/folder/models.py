"""Folder model.

A folder is a named content directory of an account on its streaming host.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mediahost.core.database import Base


class Folder(Base):
    """Content folder of an account.

    ``host_id`` is NULL until an operation assigns a streaming host.
    """

    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_folders_account_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    host_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("streaming_hosts.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Storage accounting
    quota_mb: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    used_mb: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def percentage_used(self) -> float:
        if not self.quota_mb:
            return 0.0
        return round((self.used_mb or 0) / self.quota_mb * 100, 2)

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name={self.name}, account_id={self.account_id})>"
