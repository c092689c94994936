"""Folder reconciliation service.

Keeps folder rows consistent with the content directories on streaming
hosts. The remote side is changed before the metadata commit where
possible; when the remote step fails after the row was written, the row is
removed again so that no folder points at a directory that does not exist.
"""

import functools
import logging
import math
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.config import settings
from mediahost.core.exceptions import (
    DuplicateName,
    FolderNotEmpty,
    NoHostAvailable,
    NotFound,
    OrchestratorError,
    RemoteChannelError,
    RemoteCreateFailed,
    RemoteRenameFailed,
)
from mediahost.core.logging import log_error, log_info, log_warning
from mediahost.core.metrics import FOLDER_OPERATIONS_TOTAL
from mediahost.modules.account.models import Account
from mediahost.modules.folder.models import Folder
from mediahost.modules.folder.paths import (
    account_path,
    folder_path,
    relative_folder_path,
    validate_folder_name,
)
from mediahost.modules.folder.repository import FolderRepository
from mediahost.modules.folder.schemas import (
    FolderDeleteResponse,
    FolderInfoResponse,
    FolderListResponse,
    FolderResponse,
    FolderServerInfo,
    FolderSyncResponse,
)
from mediahost.modules.host.remote import RemoteShell
from mediahost.modules.host.service import HostSelector
from mediahost.modules.video.repository import PlaylistEntryRepository, VideoRepository

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def _tracked(operation: str):
    """Count the outcome of a folder operation."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                result = await func(*args, **kwargs)
            except OrchestratorError as e:
                FOLDER_OPERATIONS_TOTAL.labels(operation=operation, outcome=e.reason).inc()
                raise
            FOLDER_OPERATIONS_TOTAL.labels(operation=operation, outcome="success").inc()
            return result
        return wrapper
    return decorator


class FolderReconciler:
    """Create, rename, delete and synchronize folders on streaming hosts."""

    def __init__(self, session: AsyncSession, remote: RemoteShell):
        self.session = session
        self.remote = remote
        self.folder_repo = FolderRepository(session)
        self.video_repo = VideoRepository(session)
        self.playlist_repo = PlaylistEntryRepository(session)
        self.host_selector = HostSelector(session, folder_repo=self.folder_repo)

    async def _get_owned(self, account: Account, folder_id: uuid.UUID) -> Folder:
        folder = await self.folder_repo.get_for_account(account.id, folder_id)
        if not folder:
            raise NotFound("Folder not found", detail={"folder_id": str(folder_id)})
        return folder

    @staticmethod
    def _login(account: Account) -> str:
        return validate_folder_name(account.login)

    async def list_folders(self, account: Account) -> FolderListResponse:
        """List the account's active folders by name."""
        folders = await self.folder_repo.list_active(account.id)
        return FolderListResponse(
            folders=[FolderResponse.model_validate(f) for f in folders],
            total=len(folders),
        )

    @_tracked("create")
    async def create(self, account: Account, name: str) -> FolderResponse:
        """Create a folder row and its directory on the account's host.

        Raises:
            InvalidFolderName: If the name is not a valid directory name
            DuplicateName: If the account already has a folder with this name
            NoHostAvailable: If no host can be assigned
            RemoteCreateFailed: If the directory could not be created; the row
                is removed before this is raised
        """
        name = validate_folder_name(name)
        login = self._login(account)

        if await self.folder_repo.get_by_name(account.id, name):
            raise DuplicateName(
                f"A folder named '{name}' already exists",
                detail={"folder_name": name},
            )

        host_id = await self.host_selector.select_for_account(account.id)

        try:
            folder = await self.folder_repo.create(
                account_id=account.id,
                name=name,
                host_id=host_id,
                quota_mb=settings.DEFAULT_FOLDER_QUOTA_MB,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateName(
                f"A folder named '{name}' already exists",
                detail={"folder_name": name},
            ) from e

        path = folder_path(login, name)
        try:
            await self.remote.ensure_directory(host_id, account_path(login))
            await self.remote.ensure_directory(host_id, path)
            await self.remote.normalize_permissions(host_id, path)
        except RemoteChannelError as e:
            log_error(
                logger,
                "Remote folder creation failed, removing folder row",
                folder_id=str(folder.id),
                host_id=str(host_id),
                path=path,
                error=e.message,
            )
            await self.folder_repo.delete(folder)
            await self.session.commit()
            raise RemoteCreateFailed(
                "Could not create the folder on the streaming host",
                detail=e.detail,
            ) from e

        log_info(
            logger,
            "Folder created",
            folder_id=str(folder.id),
            account_id=str(account.id),
            host_id=str(host_id),
            path=path,
        )
        return FolderResponse.model_validate(folder)

    @_tracked("rename")
    async def rename(
        self, account: Account, folder_id: uuid.UUID, new_name: str
    ) -> FolderResponse:
        """Rename a folder on its host and in metadata.

        Playlist items under the folder are repointed. Video paths are derived
        from the folder name and need no update.
        """
        new_name = validate_folder_name(new_name)
        folder = await self._get_owned(account, folder_id)
        if folder.name == new_name:
            return FolderResponse.model_validate(folder)

        existing = await self.folder_repo.get_by_name(account.id, new_name)
        if existing and existing.id != folder.id:
            raise DuplicateName(
                f"A folder named '{new_name}' already exists",
                detail={"folder_name": new_name},
            )

        login = self._login(account)
        old_name = folder.name
        host_id = await self.host_selector.ensure_assigned(folder)
        old_path = folder_path(login, old_name)
        new_path = folder_path(login, new_name)

        moved = False
        try:
            if await self.remote.directory_exists(host_id, old_path):
                await self.remote.rename(host_id, old_path, new_path)
                moved = True
            else:
                log_warning(
                    logger,
                    "Folder directory missing on host, creating it under the new name",
                    folder_id=str(folder.id),
                    path=old_path,
                )
                await self.remote.ensure_directory(host_id, new_path)
            await self.remote.normalize_permissions(host_id, new_path)
        except RemoteChannelError as e:
            if moved:
                await self._restore_directory(host_id, new_path, old_path)
            raise RemoteRenameFailed(
                "Could not rename the folder on the streaming host",
                detail=e.detail,
            ) from e

        try:
            await self.folder_repo.rename(folder, new_name)
            rewritten = await self.playlist_repo.rewrite_folder_prefix(
                account.id,
                relative_folder_path(login, old_name),
                relative_folder_path(login, new_name),
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            await self._restore_directory(host_id, new_path, old_path)
            raise DuplicateName(
                f"A folder named '{new_name}' already exists",
                detail={"folder_name": new_name},
            ) from e

        log_info(
            logger,
            "Folder renamed",
            folder_id=str(folder.id),
            old_path=old_path,
            new_path=new_path,
            playlist_entries=rewritten,
        )
        return FolderResponse.model_validate(folder)

    async def _restore_directory(self, host_id: uuid.UUID, current: str, original: str) -> None:
        try:
            await self.remote.rename(host_id, current, original)
        except RemoteChannelError as e:
            log_error(
                logger,
                "Could not move folder directory back after failed rename",
                host_id=str(host_id),
                path=current,
                error=e.message,
            )

    @_tracked("delete")
    async def delete(self, account: Account, folder_id: uuid.UUID) -> FolderDeleteResponse:
        """Delete an empty folder.

        A folder is refused while videos or playlist items reference it, or
        while its remote directory still contains files.
        """
        folder = await self._get_owned(account, folder_id)
        login = self._login(account)

        video_count = await self.video_repo.count_in_folder(account.id, folder.id)
        playlist_count = await self.playlist_repo.count_references(
            account.id, relative_folder_path(login, folder.name)
        )
        if video_count or playlist_count:
            raise FolderNotEmpty(
                "Folder still has videos or playlist references",
                video_count=video_count,
                playlist_count=playlist_count,
            )

        if folder.host_id is not None:
            path = folder_path(login, folder.name)
            if await self.remote.directory_exists(folder.host_id, path):
                file_count = await self.remote.count_files(folder.host_id, path)
                if file_count > 0:
                    raise FolderNotEmpty(
                        "Folder directory still contains files",
                        remote_file_count=file_count,
                    )
                await self.remote.remove_empty_directory(folder.host_id, path)
            else:
                log_warning(
                    logger,
                    "Folder directory already absent on host",
                    folder_id=str(folder.id),
                    path=path,
                )

        await self.folder_repo.delete(folder)
        await self.session.commit()

        log_info(logger, "Folder deleted", folder_id=str(folder_id), account_id=str(account.id))
        return FolderDeleteResponse(id=folder_id, message="Folder deleted")

    @_tracked("sync")
    async def sync(self, account: Account, folder_id: uuid.UUID) -> FolderSyncResponse:
        """Repair the folder directory on its host.

        Recreates missing directories, removes partial and empty files and
        reapplies permissions. Files without a video row are reported only.
        """
        folder = await self._get_owned(account, folder_id)
        login = self._login(account)
        host_id = await self.host_selector.ensure_assigned(folder)
        path = folder_path(login, folder.name)

        await self.remote.ensure_directory(host_id, account_path(login))
        await self.remote.ensure_directory(host_id, path)
        removed = await self.remote.cleanup_partial_files(host_id, path)
        await self.remote.normalize_permissions(host_id, path, recursive=True)

        remote_files = await self.remote.list_files(host_id, path)
        known = await self.video_repo.list_file_names(folder.id)
        untracked = [f for f in remote_files if f not in known]

        log_info(
            logger,
            "Folder synchronized",
            folder_id=str(folder.id),
            path=path,
            removed_files=removed,
            untracked_files=len(untracked),
        )
        return FolderSyncResponse(
            id=folder.id,
            name=folder.name,
            path=path,
            removed_files=removed,
            untracked_files=untracked,
            message="Folder synchronized",
        )

    async def info(self, account: Account, folder_id: uuid.UUID) -> FolderInfoResponse:
        """Folder metadata plus the state of its remote directory.

        Remote failures are reported in ``server_info.error``.
        """
        folder = await self._get_owned(account, folder_id)
        login = self._login(account)
        video_count = await self.video_repo.count_in_folder(account.id, folder.id)
        path = folder_path(login, folder.name)

        server_info = FolderServerInfo(path=path)
        try:
            host_id = await self.host_selector.ensure_assigned(folder)
            server_info.exists = await self.remote.directory_exists(host_id, path)
            if server_info.exists:
                server_info.file_count = await self.remote.count_files(host_id, path)
                server_info.size_bytes = await self.remote.directory_size(host_id, path)
                server_info.size_mb = math.ceil(server_info.size_bytes / BYTES_PER_MB)
        except (RemoteChannelError, NoHostAvailable) as e:
            log_warning(
                logger,
                "Could not read folder state from host",
                folder_id=str(folder.id),
                error=e.message,
            )
            server_info.error = e.message

        return FolderInfoResponse(
            id=folder.id,
            name=folder.name,
            quota_mb=folder.quota_mb,
            used_mb=folder.used_mb,
            percentage_used=folder.percentage_used,
            video_count=video_count,
            server_info=server_info,
        )
