"""Repository for folder database operations."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.modules.folder.models import Folder


class FolderRepository:
    """Repository for Folder database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        account_id: uuid.UUID,
        name: str,
        host_id: Optional[uuid.UUID],
        quota_mb: int,
    ) -> Folder:
        """Insert a folder row. Uniqueness is checked on flush."""
        folder = Folder(
            account_id=account_id,
            name=name,
            host_id=host_id,
            quota_mb=quota_mb,
            used_mb=0,
            is_active=True,
        )
        self.session.add(folder)
        await self.session.flush()
        await self.session.refresh(folder)
        return folder

    async def get_by_id(self, folder_id: uuid.UUID) -> Optional[Folder]:
        """Get folder by ID."""
        query = select(Folder).where(Folder.id == folder_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_for_account(
        self, account_id: uuid.UUID, folder_id: uuid.UUID
    ) -> Optional[Folder]:
        """Get a folder only if it belongs to the account."""
        query = select(Folder).where(
            Folder.id == folder_id,
            Folder.account_id == account_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_name(self, account_id: uuid.UUID, name: str) -> Optional[Folder]:
        query = select(Folder).where(
            Folder.account_id == account_id,
            Folder.name == name,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_active(self, account_id: uuid.UUID) -> list[Folder]:
        """Active folders of an account ordered by name."""
        query = (
            select(Folder)
            .where(Folder.account_id == account_id, Folder.is_active.is_(True))
            .order_by(Folder.name.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_for_account(self, account_id: uuid.UUID) -> list[Folder]:
        query = select(Folder).where(Folder.account_id == account_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_assigned_host_id(self, account_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Host already serving the account's folders, if any."""
        query = (
            select(Folder.host_id)
            .where(Folder.account_id == account_id, Folder.host_id.is_not(None))
            .order_by(Folder.created_at.asc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def assign_host(self, folder: Folder, host_id: uuid.UUID) -> Folder:
        folder.host_id = host_id
        await self.session.flush()
        return folder

    async def rename(self, folder: Folder, name: str) -> Folder:
        folder.name = name
        await self.session.flush()
        return folder

    async def delete(self, folder: Folder) -> None:
        await self.session.delete(folder)
        await self.session.flush()
