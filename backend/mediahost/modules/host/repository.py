"""Repository for streaming host database operations."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.modules.host.models import HostStatus, StreamingHost


class HostRepository:
    """Repository for StreamingHost database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, host_id: uuid.UUID) -> Optional[StreamingHost]:
        """Get host by ID."""
        query = select(StreamingHost).where(StreamingHost.id == host_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_active_hosts_by_load(self) -> list[StreamingHost]:
        """Get active hosts, least loaded first.

        Load is compared by active stream count, then CPU load.
        """
        query = (
            select(StreamingHost)
            .where(StreamingHost.status == HostStatus.ACTIVE.value)
            .order_by(
                StreamingHost.active_streams.asc(),
                StreamingHost.cpu_load.asc(),
                StreamingHost.created_at.asc(),
            )
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
