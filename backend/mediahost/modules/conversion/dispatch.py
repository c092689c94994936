"""Hand-off of accepted conversions to background workers."""

import uuid
from abc import ABC, abstractmethod


class ConversionDispatcher(ABC):
    """Starts a conversion job without waiting for it."""

    @abstractmethod
    def dispatch(self, job_id: uuid.UUID) -> None:
        """Queue the job for execution."""


class CeleryConversionDispatcher(ConversionDispatcher):
    """Queues conversion jobs on the Celery broker."""

    def dispatch(self, job_id: uuid.UUID) -> None:
        from mediahost.modules.conversion.tasks import run_conversion_task

        run_conversion_task.delay(str(job_id))
