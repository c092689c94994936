"""Conversion orchestration service.

Validates a quality request against the account's plan, checks the source
and output files on the streaming host, records a conversion job and hands
it to a background worker. The worker later runs FFmpeg on the host and
registers the converted video.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.config import settings
from mediahost.core.exceptions import (
    ConversionAlreadyExists,
    InvalidQuality,
    NotFound,
    OrchestratorError,
    RemoteChannelError,
    SourceNotFound,
)
from mediahost.core.logging import log_error, log_info, log_warning
from mediahost.core.metrics import CONVERSIONS_TOTAL
from mediahost.modules.account.models import Account
from mediahost.modules.conversion.dispatch import (
    CeleryConversionDispatcher,
    ConversionDispatcher,
)
from mediahost.modules.conversion.ffmpeg import (
    FFmpegCommandBuilder,
    FFmpegConfig,
    conversion_succeeded,
)
from mediahost.modules.conversion.models import ConversionJob, ConversionJobStatus
from mediahost.modules.conversion.repository import ConversionJobRepository
from mediahost.modules.conversion.schemas import (
    BatchConversionItem,
    BatchConversionResponse,
    ConversionAcceptedResponse,
    ConversionDeleteResponse,
    ConversionState,
    ConversionStatusResponse,
    VideoConversionInfo,
    VideoConversionListResponse,
)
from mediahost.modules.conversion.status import StatusTracker, get_status_tracker
from mediahost.modules.folder.paths import (
    converted_file_name,
    validate_folder_name,
    video_output_path,
    video_path,
)
from mediahost.modules.folder.repository import FolderRepository
from mediahost.modules.host.remote import RemoteShell
from mediahost.modules.host.service import HostSelector
from mediahost.modules.quality.policy import (
    QualityRequest,
    TargetSpec,
    default_tier,
    offerable_tiers,
    resolve_request,
)
from mediahost.modules.quality.schemas import QualityListResponse, QualityOptionResponse
from mediahost.modules.video.models import Video
from mediahost.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)


class ConversionOrchestrator:
    """Service for video conversions on streaming hosts."""

    def __init__(
        self,
        session: AsyncSession,
        remote: RemoteShell,
        dispatcher: Optional[ConversionDispatcher] = None,
        status_tracker: Optional[StatusTracker] = None,
    ):
        self.session = session
        self.remote = remote
        self.dispatcher = dispatcher or CeleryConversionDispatcher()
        self.video_repo = VideoRepository(session)
        self.folder_repo = FolderRepository(session)
        self.job_repo = ConversionJobRepository(session)
        self.host_selector = HostSelector(session, folder_repo=self.folder_repo)
        self.status_tracker = status_tracker or get_status_tracker(session, remote)
        self.ffmpeg = FFmpegCommandBuilder()

    # ==================== Listing ====================

    async def list_videos(
        self, account: Account, folder_id: Optional[uuid.UUID] = None
    ) -> VideoConversionListResponse:
        """List the account's videos, newest first, with conversion options."""
        ceiling = account.bitrate_ceiling
        videos = await self.video_repo.list_for_account(account.id, folder_id)
        folder_names = {f.id: f.name for f in await self.folder_repo.list_for_account(account.id)}
        qualities = [QualityOptionResponse.from_option(o) for o in offerable_tiers(ceiling)]

        items = []
        for video in videos:
            needs_conversion = not video.is_mp4 or (video.bitrate_kbps or 0) > ceiling
            items.append(VideoConversionInfo(
                id=video.id,
                name=video.name,
                folder_id=video.folder_id,
                folder_name=folder_names.get(video.folder_id),
                file_name=video.file_name,
                duration_seconds=video.duration_seconds,
                file_size=video.file_size,
                current_bitrate=video.bitrate_kbps,
                bitrate_ceiling=ceiling,
                resolution=video.resolution,
                original_format=video.original_format,
                is_mp4=video.is_mp4,
                needs_conversion=needs_conversion,
                can_use_current=not needs_conversion,
                conversion_status=(
                    ConversionState.AVAILABLE if video.is_compatible
                    else ConversionState.NOT_STARTED
                ),
                conversion_label=video.conversion_label,
                source_video_id=video.source_video_id,
                available_qualities=qualities,
            ))

        return VideoConversionListResponse(
            videos=items,
            total=len(items),
            bitrate_ceiling=ceiling,
        )

    async def list_qualities(self, account: Account) -> QualityListResponse:
        """Quality tiers with their availability under the account's ceiling."""
        ceiling = account.bitrate_ceiling
        return QualityListResponse(
            bitrate_ceiling=ceiling,
            qualities=[QualityOptionResponse.from_option(o) for o in offerable_tiers(ceiling)],
        )

    # ==================== Conversion requests ====================

    async def request_conversion(
        self, account: Account, video_id: uuid.UUID, request: QualityRequest
    ) -> ConversionAcceptedResponse:
        """Validate, record and dispatch a conversion.

        Returns as soon as the job is queued; completion is observed through
        the status query.

        Raises:
            NotFound: If the video does not belong to the account
            InvalidQuality: If the quality request is invalid or above the ceiling
            SourceNotFound: If the source file is missing on the host
            ConversionAlreadyExists: If the output exists or a job is already
                queued, running or done for this bitrate
        """
        video = await self.video_repo.get_for_account(account.id, video_id)
        if not video:
            raise NotFound("Video not found", detail={"video_id": str(video_id)})

        target = resolve_request(account.bitrate_ceiling, request)

        folder = await self.folder_repo.get_by_id(video.folder_id)
        if not folder:
            raise NotFound("Video folder not found", detail={"folder_id": str(video.folder_id)})
        login = validate_folder_name(account.login)
        host_id = await self.host_selector.ensure_assigned(folder)
        source_path = video_path(login, folder.name, video.file_name)
        output_path = video_output_path(source_path, target.bitrate)

        if not (await self.remote.stat(host_id, source_path)).exists:
            raise SourceNotFound(
                "Video file not found on the streaming host",
                detail={"path": source_path},
            )
        if (await self.remote.stat(host_id, output_path)).exists:
            raise ConversionAlreadyExists(
                f"A {target.bitrate} kbps version of this video already exists",
                detail={"path": output_path},
            )

        job = await self._reserve_job(account, video, target, host_id, source_path, output_path)

        try:
            self.dispatcher.dispatch(job.id)
        except Exception as e:
            await self.job_repo.fail_job(job, f"Dispatch failed: {e}")
            await self.session.commit()
            CONVERSIONS_TOTAL.labels(outcome="dispatch_failed").inc()
            raise

        CONVERSIONS_TOTAL.labels(outcome="dispatched").inc()
        log_info(
            logger,
            "Conversion dispatched",
            job_id=str(job.id),
            video_id=str(video.id),
            target_bitrate=target.bitrate,
            output_path=output_path,
        )
        return ConversionAcceptedResponse(
            conversion_id=f"{video.id}_{target.bitrate}",
            job_id=job.id,
            video_id=video.id,
            target_bitrate=target.bitrate,
            target_resolution=target.resolution,
            quality_label=target.label,
            message="Conversion started",
        )

    async def _reserve_job(
        self,
        account: Account,
        video: Video,
        target: TargetSpec,
        host_id: uuid.UUID,
        source_path: str,
        output_path: str,
    ) -> ConversionJob:
        """Claim the (video, bitrate) slot for a new job.

        A failed job is reused; any other existing job means the conversion
        is already underway or finished.
        """
        fields = dict(
            account_id=account.id,
            host_id=host_id,
            target_width=target.width,
            target_height=target.height,
            quality_tier=target.tier.value,
            quality_label=target.label,
            source_path=source_path,
            output_path=output_path,
        )

        existing = await self.job_repo.get_by_video_and_bitrate(video.id, target.bitrate)
        if existing is not None:
            if existing.status != ConversionJobStatus.FAILED.value:
                raise ConversionAlreadyExists(
                    f"A {target.bitrate} kbps conversion of this video is already {existing.status}",
                    detail={"job_id": str(existing.id), "status": existing.status},
                )
            job = await self.job_repo.reset(existing, **fields)
            await self.session.commit()
            return job

        try:
            job = await self.job_repo.create(
                video_id=video.id,
                target_bitrate=target.bitrate,
                **fields,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            # The rollback expired the account the caller keeps using
            await self.session.refresh(account)
            raise ConversionAlreadyExists(
                f"A {target.bitrate} kbps conversion of this video is already underway",
                detail={"video_id": str(video.id), "target_bitrate": target.bitrate},
            ) from e
        return job

    async def request_batch(
        self,
        account: Account,
        video_ids: list[uuid.UUID],
        request: Optional[QualityRequest] = None,
    ) -> BatchConversionResponse:
        """Request the same conversion for several videos, one after another.

        Without a quality the highest tier the plan allows is used. Each
        video succeeds or fails on its own.
        """
        if request is None or (not request.tier and not request.use_custom):
            tier = default_tier(account.bitrate_ceiling)
            if tier is None:
                raise InvalidQuality(
                    "No quality tier is available for this plan",
                    detail={"ceiling": account.bitrate_ceiling},
                )
            request = QualityRequest(tier=tier.value)

        results = []
        for video_id in video_ids:
            try:
                accepted = await self.request_conversion(account, video_id, request)
                results.append(BatchConversionItem(
                    video_id=video_id,
                    success=True,
                    conversion=accepted,
                ))
            except OrchestratorError as e:
                results.append(BatchConversionItem(
                    video_id=video_id,
                    success=False,
                    reason=e.reason,
                    error=e.message,
                ))

        accepted_count = sum(1 for r in results if r.success)
        log_info(
            logger,
            "Batch conversion requested",
            account_id=str(account.id),
            accepted=accepted_count,
            total=len(results),
        )
        return BatchConversionResponse(
            results=results,
            accepted=accepted_count,
            total=len(results),
        )

    # ==================== Execution ====================

    async def execute_job(self, job_id: uuid.UUID) -> Optional[ConversionJob]:
        """Run a pending conversion job on its host.

        Marks the job done with the new video, or failed with the reason.
        Errors are recorded on the job, not raised.
        """
        job = await self.job_repo.get_by_id(job_id)
        if job is None:
            log_warning(logger, "Conversion job not found", job_id=str(job_id))
            return None
        if job.status != ConversionJobStatus.PENDING.value:
            log_warning(
                logger,
                "Conversion job is not pending, skipping",
                job_id=str(job_id),
                status=job.status,
            )
            return job

        await self.job_repo.start_job(job)
        await self.session.commit()

        command = self.ffmpeg.build_remote_command(FFmpegConfig(
            input_path=job.source_path,
            output_path=job.output_path,
            bitrate=job.target_bitrate,
            width=job.target_width,
            height=job.target_height,
        ))
        log_info(logger, "Conversion started", job_id=str(job.id), host_id=str(job.host_id))

        try:
            result = await self.remote.run(job.host_id, "convert", command)
        except RemoteChannelError as e:
            await self._discard_output(job)
            return await self._fail_job(job_id, f"Remote channel error: {e.message}")

        if not conversion_succeeded(result.stdout):
            await self._discard_output(job)
            return await self._fail_job(job_id, "FFmpeg reported a conversion error")

        try:
            await self.remote.chmod(job.host_id, job.output_path, settings.CONVERTED_FILE_MODE)
        except RemoteChannelError as e:
            log_warning(
                logger,
                "Could not set permissions on converted file",
                job_id=str(job.id),
                error=e.message,
            )

        try:
            source = await self.video_repo.get_by_id(job.video_id)
            if source is None:
                raise NotFound("Source video was deleted during conversion")
            converted = await self.video_repo.create(
                account_id=source.account_id,
                folder_id=source.folder_id,
                name=f"{source.name} ({job.quality_label})",
                file_name=converted_file_name(source.file_name, job.target_bitrate),
                duration_seconds=source.duration_seconds,
                file_size=0,
                bitrate_kbps=job.target_bitrate,
                width=job.target_width,
                height=job.target_height,
                original_format="mp4",
                is_mp4=True,
                is_compatible=True,
                conversion_label=job.quality_label,
                source_video_id=source.id,
            )
            await self.job_repo.complete_job(job, converted.id)
            await self.session.commit()
        except (SQLAlchemyError, OrchestratorError) as e:
            await self.session.rollback()
            return await self._fail_job(job_id, f"Could not register converted video: {e}")

        CONVERSIONS_TOTAL.labels(outcome="done").inc()
        log_info(
            logger,
            "Conversion finished",
            job_id=str(job.id),
            output_video_id=str(converted.id),
        )
        return job

    async def _discard_output(self, job: ConversionJob) -> None:
        """Remove whatever a failed FFmpeg run left under the output name."""
        try:
            await self.remote.remove_file(job.host_id, job.output_path)
        except RemoteChannelError as e:
            log_warning(
                logger,
                "Could not remove partial output from host",
                job_id=str(job.id),
                path=job.output_path,
                error=e.message,
            )

    async def _fail_job(self, job_id: uuid.UUID, error: str) -> Optional[ConversionJob]:
        CONVERSIONS_TOTAL.labels(outcome="failed").inc()
        log_error(logger, "Conversion failed", job_id=str(job_id), error=error)
        job = await self.job_repo.get_by_id(job_id)
        if job is None:
            return None
        await self.job_repo.fail_job(job, error)
        await self.session.commit()
        return job

    # ==================== Status and deletion ====================

    async def get_status(self, account: Account, reference: str) -> ConversionStatusResponse:
        """Report the status of a conversion by conversion id or video id."""
        return await self.status_tracker.status(account, reference)

    async def delete_conversion(
        self, account: Account, video_id: uuid.UUID
    ) -> ConversionDeleteResponse:
        """Delete a converted video, its file and its job record.

        Only converted videos can be deleted here. A failure to remove the
        remote file is logged and does not stop the deletion.
        """
        video = await self.video_repo.get_for_account(account.id, video_id)
        if not video or not video.is_conversion:
            raise NotFound(
                "Converted video not found",
                detail={"video_id": str(video_id)},
            )

        remote_removed = False
        folder = await self.folder_repo.get_by_id(video.folder_id)
        if folder is not None and folder.host_id is not None:
            path = video_path(validate_folder_name(account.login), folder.name, video.file_name)
            try:
                await self.remote.remove_file(folder.host_id, path)
                remote_removed = True
            except RemoteChannelError as e:
                log_warning(
                    logger,
                    "Could not remove converted file from host",
                    video_id=str(video.id),
                    path=path,
                    error=e.message,
                )

        job = await self.job_repo.get_by_output_video(video.id)
        if job is None and video.source_video_id and video.bitrate_kbps:
            job = await self.job_repo.get_by_video_and_bitrate(
                video.source_video_id, video.bitrate_kbps
            )
        if job is not None:
            await self.job_repo.delete(job)

        await self.video_repo.delete(video)
        await self.session.commit()

        log_info(logger, "Converted video deleted", video_id=str(video_id))
        return ConversionDeleteResponse(
            video_id=video_id,
            remote_file_removed=remote_removed,
            message="Converted video deleted",
        )
