"""API router for folder management."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.database import get_db
from mediahost.core.exceptions import OrchestratorError, to_http_exception
from mediahost.modules.account.dependencies import CurrentAccount
from mediahost.modules.folder.schemas import (
    FolderCreateRequest,
    FolderDeleteResponse,
    FolderInfoResponse,
    FolderListResponse,
    FolderRenameRequest,
    FolderResponse,
    FolderSyncResponse,
)
from mediahost.modules.folder.service import FolderReconciler
from mediahost.modules.host.remote import RemoteShell, get_remote_shell

router = APIRouter(prefix="/folders", tags=["folders"])


async def get_folder_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    remote: Annotated[RemoteShell, Depends(get_remote_shell)],
) -> FolderReconciler:
    """Dependency to get FolderReconciler instance."""
    return FolderReconciler(session, remote)


FolderService = Annotated[FolderReconciler, Depends(get_folder_service)]


@router.get(
    "",
    response_model=FolderListResponse,
    summary="List folders",
)
async def list_folders(
    account: CurrentAccount,
    service: FolderService,
) -> FolderListResponse:
    return await service.list_folders(account)


@router.post(
    "",
    response_model=FolderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a folder",
    description="Create a folder and its content directory on the account's streaming host.",
)
async def create_folder(
    request: FolderCreateRequest,
    account: CurrentAccount,
    service: FolderService,
) -> FolderResponse:
    try:
        return await service.create(account, request.name)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.put(
    "/{folder_id}",
    response_model=FolderResponse,
    summary="Rename a folder",
)
async def rename_folder(
    folder_id: uuid.UUID,
    request: FolderRenameRequest,
    account: CurrentAccount,
    service: FolderService,
) -> FolderResponse:
    try:
        return await service.rename(account, folder_id, request.name)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.delete(
    "/{folder_id}",
    response_model=FolderDeleteResponse,
    summary="Delete an empty folder",
)
async def delete_folder(
    folder_id: uuid.UUID,
    account: CurrentAccount,
    service: FolderService,
) -> FolderDeleteResponse:
    try:
        return await service.delete(account, folder_id)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.get(
    "/{folder_id}/info",
    response_model=FolderInfoResponse,
    summary="Get folder usage and remote state",
)
async def get_folder_info(
    folder_id: uuid.UUID,
    account: CurrentAccount,
    service: FolderService,
) -> FolderInfoResponse:
    try:
        return await service.info(account, folder_id)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.post(
    "/{folder_id}/sync",
    response_model=FolderSyncResponse,
    summary="Synchronize a folder directory",
    description="Recreate the directory if missing, remove partial files and fix permissions.",
)
async def sync_folder(
    folder_id: uuid.UUID,
    account: CurrentAccount,
    service: FolderService,
) -> FolderSyncResponse:
    try:
        return await service.sync(account, folder_id)
    except OrchestratorError as e:
        raise to_http_exception(e)
