"""Celery tasks for video conversion.

Each task runs one conversion job to completion on its streaming host.
"""

import asyncio
import logging
import uuid

from celery import Task

from mediahost.core.celery_app import celery_app
from mediahost.core.database import async_session_maker, engine
from mediahost.core.logging import set_correlation_id
from mediahost.modules.conversion.repository import ConversionJobRepository
from mediahost.modules.conversion.service import ConversionOrchestrator
from mediahost.modules.host.remote import get_remote_shell

logger = logging.getLogger(__name__)


class ConversionTask(Task):
    """Base task for conversions. Conversions are not retried."""
    abstract = True
    max_retries = 0

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Mark the job failed when the task dies outside the orchestrator."""
        job_id = args[0] if args else kwargs.get("job_id")
        if job_id:
            asyncio.run(_mark_job_failed(job_id, str(exc)))


async def _mark_job_failed(job_id: str, error: str) -> None:
    try:
        async with async_session_maker() as session:
            repo = ConversionJobRepository(session)
            job = await repo.get_by_id(uuid.UUID(job_id))
            if job and job.is_active():
                await repo.fail_job(job, error)
                await session.commit()
    finally:
        await engine.dispose()


@celery_app.task(bind=True, base=ConversionTask)
def run_conversion_task(self: ConversionTask, job_id: str) -> dict:
    """Run a conversion job.

    Args:
        job_id: UUID of the conversion job

    Returns:
        dict: Final job status
    """
    set_correlation_id(self.request.id or job_id)
    return asyncio.run(_run_conversion_async(job_id))


async def _run_conversion_async(job_id: str) -> dict:
    """Async implementation of the conversion task."""
    try:
        async with async_session_maker() as session:
            orchestrator = ConversionOrchestrator(session, get_remote_shell())
            job = await orchestrator.execute_job(uuid.UUID(job_id))
            if job is None:
                return {"success": False, "job_id": job_id, "error": "Job not found"}
            return {
                "success": job.status == "done",
                "job_id": job_id,
                "status": job.status,
                "output_video_id": str(job.output_video_id) if job.output_video_id else None,
                "error": job.error_message,
            }
    finally:
        # Pooled connections belong to this task's event loop
        await engine.dispose()
