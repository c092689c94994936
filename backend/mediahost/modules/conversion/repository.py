"""Repository for conversion job database operations."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.modules.conversion.models import ConversionJob, ConversionJobStatus


class ConversionJobRepository:
    """Repository for ConversionJob database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields) -> ConversionJob:
        """Insert a pending job. Uniqueness per (video, bitrate) is checked on flush."""
        job = ConversionJob(status=ConversionJobStatus.PENDING.value, **fields)
        self.session.add(job)
        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def get_by_id(self, job_id: uuid.UUID) -> Optional[ConversionJob]:
        """Get job by ID."""
        query = select(ConversionJob).where(ConversionJob.id == job_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_video_and_bitrate(
        self, video_id: uuid.UUID, target_bitrate: int
    ) -> Optional[ConversionJob]:
        query = select(ConversionJob).where(
            ConversionJob.video_id == video_id,
            ConversionJob.target_bitrate == target_bitrate,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_for_video(self, video_id: uuid.UUID) -> Optional[ConversionJob]:
        """Most recent job converting the given source video."""
        query = (
            select(ConversionJob)
            .where(ConversionJob.video_id == video_id)
            .order_by(ConversionJob.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_output_video(self, output_video_id: uuid.UUID) -> Optional[ConversionJob]:
        query = select(ConversionJob).where(ConversionJob.output_video_id == output_video_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def reset(self, job: ConversionJob, **fields) -> ConversionJob:
        """Put a failed job back in the queue with new parameters."""
        for key, value in fields.items():
            setattr(job, key, value)
        job.status = ConversionJobStatus.PENDING.value
        job.error_message = None
        job.output_video_id = None
        job.started_at = None
        job.completed_at = None
        await self.session.flush()
        return job

    async def start_job(self, job: ConversionJob) -> ConversionJob:
        job.status = ConversionJobStatus.RUNNING.value
        job.started_at = datetime.now(timezone.utc)
        await self.session.flush()
        return job

    async def complete_job(
        self, job: ConversionJob, output_video_id: uuid.UUID
    ) -> ConversionJob:
        job.status = ConversionJobStatus.DONE.value
        job.output_video_id = output_video_id
        job.completed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return job

    async def fail_job(self, job: ConversionJob, error: str) -> ConversionJob:
        job.status = ConversionJobStatus.FAILED.value
        job.error_message = error
        job.completed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return job

    async def delete(self, job: ConversionJob) -> None:
        await self.session.delete(job)
        await self.session.flush()
