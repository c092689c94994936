"""Repositories for videos and playlist references."""

import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.modules.video.models import PlaylistEntry, Video


class VideoRepository:
    """Repository for Video database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields) -> Video:
        video = Video(**fields)
        self.session.add(video)
        await self.session.flush()
        await self.session.refresh(video)
        return video

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        query = select(Video).where(Video.id == video_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_for_account(
        self, account_id: uuid.UUID, video_id: uuid.UUID
    ) -> Optional[Video]:
        """Get a video only if it belongs to the account."""
        query = select(Video).where(
            Video.id == video_id,
            Video.account_id == account_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_account(
        self, account_id: uuid.UUID, folder_id: Optional[uuid.UUID] = None
    ) -> list[Video]:
        """Videos of an account, newest first."""
        query = select(Video).where(Video.account_id == account_id)
        if folder_id is not None:
            query = query.where(Video.folder_id == folder_id)
        query = query.order_by(Video.created_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_in_folder(self, account_id: uuid.UUID, folder_id: uuid.UUID) -> int:
        query = select(func.count(Video.id)).where(
            Video.account_id == account_id,
            Video.folder_id == folder_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one() or 0

    async def list_file_names(self, folder_id: uuid.UUID) -> set[str]:
        """File names recorded for a folder."""
        query = select(Video.file_name).where(Video.folder_id == folder_id)
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def find_latest_by_reference(
        self, account_id: uuid.UUID, reference: str
    ) -> Optional[Video]:
        """Most recent video whose id equals the reference or whose name contains it."""
        conditions = [Video.name.contains(reference, autoescape=True)]
        try:
            conditions.append(Video.id == uuid.UUID(reference))
        except ValueError:
            pass
        query = (
            select(Video)
            .where(Video.account_id == account_id, or_(*conditions))
            .order_by(Video.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_file_size(self, video: Video, file_size: int) -> Video:
        video.file_size = file_size
        await self.session.flush()
        return video

    async def delete(self, video: Video) -> None:
        await self.session.delete(video)
        await self.session.flush()


def folder_prefix(relative_folder: str) -> str:
    """Prefix shared by every path inside a folder.

    Matching on the prefix compares whole path segments: ``login/Live/``
    matches ``login/Live/a.mp4`` but not ``login/Live2/a.mp4``.
    """
    return relative_folder.rstrip("/") + "/"


def rewrite_folder_path(path: str, old_folder: str, new_folder: str) -> str:
    """Move a content path from one folder to another, leaving others untouched."""
    old_prefix = folder_prefix(old_folder)
    if not path.startswith(old_prefix):
        return path
    return folder_prefix(new_folder) + path[len(old_prefix):]


class PlaylistEntryRepository:
    """Playlist references to content paths."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_references(self, account_id: uuid.UUID, relative_folder: str) -> int:
        """Count playlist items pointing into a folder."""
        query = select(func.count(PlaylistEntry.id)).where(
            PlaylistEntry.account_id == account_id,
            PlaylistEntry.video_path.startswith(
                folder_prefix(relative_folder), autoescape=True
            ),
        )
        result = await self.session.execute(query)
        return result.scalar_one() or 0

    async def rewrite_folder_prefix(
        self, account_id: uuid.UUID, old_folder: str, new_folder: str
    ) -> int:
        """Point playlist items of a renamed folder at its new path.

        Returns:
            Number of rewritten entries
        """
        old_prefix = folder_prefix(old_folder)
        query = select(PlaylistEntry).where(
            PlaylistEntry.account_id == account_id,
            PlaylistEntry.video_path.startswith(old_prefix, autoescape=True),
        )
        result = await self.session.execute(query)
        entries = list(result.scalars().all())
        for entry in entries:
            entry.video_path = rewrite_folder_path(entry.video_path, old_folder, new_folder)
        await self.session.flush()
        return len(entries)
