"""Conversion status tracking.

Two trackers answer "how far is this conversion": the job table, which
records every state transition, and inference from the remote file system,
which only knows whether the output file exists yet and so cannot tell a
failed conversion from a running one.
"""

import logging
import re
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.config import settings
from mediahost.core.exceptions import RemoteChannelError
from mediahost.core.logging import log_warning
from mediahost.modules.account.models import Account
from mediahost.modules.conversion.models import ConversionJob, ConversionJobStatus
from mediahost.modules.conversion.repository import ConversionJobRepository
from mediahost.modules.conversion.schemas import ConversionState, ConversionStatusResponse
from mediahost.modules.folder.paths import validate_folder_name, video_path
from mediahost.modules.folder.repository import FolderRepository
from mediahost.modules.host.remote import RemoteShell
from mediahost.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)

# Placeholder progress; conversions do not report real progress
IN_PROGRESS_PERCENT = 50
DONE_PERCENT = 100

_CONVERSION_ID_PATTERN = re.compile(r"^(?P<video_id>[0-9a-fA-F-]{32,36})_(?P<bitrate>\d+)$")


def parse_conversion_id(reference: str) -> Optional[tuple[uuid.UUID, int]]:
    """Split a ``<video_id>_<bitrate>`` conversion id.

    Returns:
        (video id, bitrate), or None if the reference is not a conversion id
    """
    match = _CONVERSION_ID_PATTERN.match(reference.strip())
    if not match:
        return None
    try:
        video_id = uuid.UUID(match.group("video_id"))
    except ValueError:
        return None
    return video_id, int(match.group("bitrate"))


class StatusTracker(ABC):
    """Answers conversion status queries."""

    @abstractmethod
    async def status(self, account: Account, reference: str) -> ConversionStatusResponse:
        """Report the status of the conversion identified by ``reference``."""


class JobTableStatusTracker(StatusTracker):
    """Status from conversion job records.

    The reference may be a conversion id, a source video id or the id of
    the converted video.
    """

    def __init__(
        self,
        session: AsyncSession,
        remote: RemoteShell,
        job_repo: Optional[ConversionJobRepository] = None,
        video_repo: Optional[VideoRepository] = None,
    ):
        self.session = session
        self.remote = remote
        self.job_repo = job_repo or ConversionJobRepository(session)
        self.video_repo = video_repo or VideoRepository(session)

    async def _find_job(self, account: Account, reference: str) -> Optional[ConversionJob]:
        parsed = parse_conversion_id(reference)
        if parsed:
            job = await self.job_repo.get_by_video_and_bitrate(*parsed)
        else:
            try:
                video_id = uuid.UUID(reference)
            except ValueError:
                return None
            job = await self.job_repo.get_by_output_video(video_id)
            if job is None:
                job = await self.job_repo.get_latest_for_video(video_id)

        if job is None or job.account_id != account.id:
            return None
        return job

    async def _output_size(self, job: ConversionJob) -> Optional[int]:
        try:
            stat = await self.remote.stat(job.host_id, job.output_path)
        except RemoteChannelError as e:
            log_warning(
                logger,
                "Could not stat conversion output",
                job_id=str(job.id),
                error=e.message,
            )
            return None
        if not stat.exists:
            return None

        if job.output_video_id is not None:
            video = await self.video_repo.get_by_id(job.output_video_id)
            if video is not None and not video.file_size:
                await self.video_repo.update_file_size(video, stat.size)
                await self.session.commit()
        return stat.size

    async def status(self, account: Account, reference: str) -> ConversionStatusResponse:
        job = await self._find_job(account, reference)
        if job is None:
            return ConversionStatusResponse(
                reference=reference,
                status=ConversionState.NOT_STARTED,
                progress=0,
            )

        report = ConversionStatusResponse(
            reference=reference,
            status=ConversionState.IN_PROGRESS,
            progress=IN_PROGRESS_PERCENT,
            quality=job.quality_label,
            bitrate=job.target_bitrate,
        )
        if job.status == ConversionJobStatus.FAILED.value:
            report.status = ConversionState.FAILED
            report.progress = 0
            report.error = job.error_message
        elif job.status == ConversionJobStatus.DONE.value:
            report.status = ConversionState.DONE
            report.progress = DONE_PERCENT
            report.file_size = await self._output_size(job)
        return report


class RemoteInferenceStatusTracker(StatusTracker):
    """Status inferred from the presence of the converted file.

    Looks up the newest video whose id equals the reference or whose name
    contains it. An existing file means done; anything else is reported as in
    progress.
    """

    def __init__(
        self,
        session: AsyncSession,
        remote: RemoteShell,
        video_repo: Optional[VideoRepository] = None,
        folder_repo: Optional[FolderRepository] = None,
    ):
        self.session = session
        self.remote = remote
        self.video_repo = video_repo or VideoRepository(session)
        self.folder_repo = folder_repo or FolderRepository(session)

    async def status(self, account: Account, reference: str) -> ConversionStatusResponse:
        video = await self.video_repo.find_latest_by_reference(account.id, reference)
        if video is None:
            return ConversionStatusResponse(
                reference=reference,
                status=ConversionState.NOT_STARTED,
                progress=0,
            )

        report = ConversionStatusResponse(
            reference=reference,
            status=ConversionState.IN_PROGRESS,
            progress=IN_PROGRESS_PERCENT,
            quality=video.conversion_label,
            bitrate=video.bitrate_kbps,
        )
        folder = await self.folder_repo.get_by_id(video.folder_id)
        if folder is None or folder.host_id is None:
            return report

        path = video_path(validate_folder_name(account.login), folder.name, video.file_name)
        stat = await self.remote.stat(folder.host_id, path)
        if stat.exists:
            report.status = ConversionState.DONE
            report.progress = DONE_PERCENT
            report.file_size = stat.size
        return report


def get_status_tracker(
    session: AsyncSession, remote: RemoteShell, mode: Optional[str] = None
) -> StatusTracker:
    """Create the tracker selected by CONVERSION_STATUS_MODE."""
    mode = mode or settings.CONVERSION_STATUS_MODE
    if mode == "jobs":
        return JobTableStatusTracker(session, remote)
    if mode == "inference":
        return RemoteInferenceStatusTracker(session, remote)
    raise ValueError(f"Unknown conversion status mode: {mode}")
