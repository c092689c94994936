"""Host selection for folders and conversions.

A folder starts without a host. The first operation that needs the remote
side assigns one: the host already serving the account's other folders, or
else the least loaded active host.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.exceptions import NoHostAvailable
from mediahost.modules.folder.models import Folder
from mediahost.modules.folder.repository import FolderRepository
from mediahost.modules.host.repository import HostRepository

logger = logging.getLogger(__name__)


class HostSelector:
    """Chooses and persists the streaming host of a folder."""

    def __init__(
        self,
        session: AsyncSession,
        host_repo: Optional[HostRepository] = None,
        folder_repo: Optional[FolderRepository] = None,
    ):
        self.session = session
        self.host_repo = host_repo or HostRepository(session)
        self.folder_repo = folder_repo or FolderRepository(session)

    async def select_for_account(self, account_id: uuid.UUID) -> uuid.UUID:
        """Pick the host for a new folder of an account.

        Returns:
            ID of the account's current host, or of the least loaded active host

        Raises:
            NoHostAvailable: If the account has no host and none is active
        """
        host_id = await self.folder_repo.get_assigned_host_id(account_id)
        if host_id is not None:
            return host_id

        hosts = await self.host_repo.get_active_hosts_by_load()
        if not hosts:
            raise NoHostAvailable(
                "No active streaming host is available",
                detail={"account_id": str(account_id)},
            )

        selected = hosts[0]
        logger.info(
            "Selected least loaded host",
            extra={
                "account_id": str(account_id),
                "host_id": str(selected.id),
                "active_streams": selected.active_streams,
                "cpu_load": selected.cpu_load,
            },
        )
        return selected.id

    async def ensure_assigned(self, folder: Folder) -> uuid.UUID:
        """Return the folder's host, assigning one if it has none."""
        if folder.host_id is not None:
            return folder.host_id

        host_id = await self.select_for_account(folder.account_id)
        await self.folder_repo.assign_host(folder, host_id)
        await self.session.commit()
        logger.info(
            "Assigned host to folder",
            extra={"folder_id": str(folder.id), "host_id": str(host_id)},
        )
        return host_id
