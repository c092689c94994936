"""API router for video conversion."""

import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.database import get_db
from mediahost.core.exceptions import OrchestratorError, to_http_exception
from mediahost.modules.account.dependencies import CurrentAccount
from mediahost.modules.conversion.schemas import (
    BatchConversionRequest,
    BatchConversionResponse,
    ConversionAcceptedResponse,
    ConversionDeleteResponse,
    ConversionRequest,
    ConversionStatusResponse,
    VideoConversionListResponse,
)
from mediahost.modules.conversion.service import ConversionOrchestrator
from mediahost.modules.host.remote import RemoteShell, get_remote_shell
from mediahost.modules.quality.schemas import QualityListResponse

router = APIRouter(prefix="/conversion", tags=["conversion"])


async def get_conversion_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    remote: Annotated[RemoteShell, Depends(get_remote_shell)],
) -> ConversionOrchestrator:
    """Dependency to get ConversionOrchestrator instance."""
    return ConversionOrchestrator(session, remote)


ConversionService = Annotated[ConversionOrchestrator, Depends(get_conversion_service)]


@router.get(
    "/videos",
    response_model=VideoConversionListResponse,
    summary="List videos with conversion options",
)
async def list_videos(
    account: CurrentAccount,
    service: ConversionService,
    folder_id: Optional[uuid.UUID] = Query(None, description="Only videos of this folder"),
) -> VideoConversionListResponse:
    return await service.list_videos(account, folder_id)


@router.get(
    "/qualities",
    response_model=QualityListResponse,
    summary="List quality tiers",
)
async def list_qualities(
    account: CurrentAccount,
    service: ConversionService,
) -> QualityListResponse:
    return await service.list_qualities(account)


@router.post(
    "/convert",
    response_model=ConversionAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Convert a video",
    description="Queue a conversion and return immediately; poll the status endpoint for completion.",
)
async def convert_video(
    request: ConversionRequest,
    account: CurrentAccount,
    service: ConversionService,
) -> ConversionAcceptedResponse:
    try:
        return await service.request_conversion(account, request.video_id, request.to_request())
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.post(
    "/batch",
    response_model=BatchConversionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Convert several videos",
)
async def convert_batch(
    request: BatchConversionRequest,
    account: CurrentAccount,
    service: ConversionService,
) -> BatchConversionResponse:
    quality = None if request.is_empty() else request.to_request()
    try:
        return await service.request_batch(account, request.video_ids, quality)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.get(
    "/status/{reference}",
    response_model=ConversionStatusResponse,
    summary="Get conversion status",
    description="Reference is a conversion id (<video_id>_<bitrate>) or a video id.",
)
async def get_conversion_status(
    reference: str,
    account: CurrentAccount,
    service: ConversionService,
) -> ConversionStatusResponse:
    try:
        return await service.get_status(account, reference)
    except OrchestratorError as e:
        raise to_http_exception(e)


@router.delete(
    "/{video_id}",
    response_model=ConversionDeleteResponse,
    summary="Delete a converted video",
)
async def delete_conversion(
    video_id: uuid.UUID,
    account: CurrentAccount,
    service: ConversionService,
) -> ConversionDeleteResponse:
    try:
        return await service.delete_conversion(account, video_id)
    except OrchestratorError as e:
        raise to_http_exception(e)
