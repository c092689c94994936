"""Account model.

Accounts are owned by the upstream user service; this service reads the
fields that shape content layout and conversion limits.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from mediahost.core.config import settings
from mediahost.core.database import Base


def derive_login(email: Optional[str], account_id: object) -> str:
    """Name of the account's content directory.

    The local part of the email address, or ``user_<id>`` without one.
    """
    if email and "@" in email:
        local_part = email.split("@", 1)[0].strip()
        if local_part:
            return local_part
    return f"user_{account_id}"


class Account(Base):
    """Streaming account."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Plan limits
    bitrate_ceiling_kbps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    storage_quota_mb: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def login(self) -> str:
        return derive_login(self.email, self.id)

    @property
    def bitrate_ceiling(self) -> int:
        """Maximum bitrate the plan allows, in kbps."""
        return self.bitrate_ceiling_kbps or settings.DEFAULT_BITRATE_CEILING_KBPS

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, login={self.login})>"
