"""Conversion module.

Quality-bounded video conversions executed with FFmpeg on streaming hosts.
The service, router and tasks are imported from their modules directly.
"""

from mediahost.modules.conversion.models import ConversionJob, ConversionJobStatus
from mediahost.modules.conversion.repository import ConversionJobRepository

__all__ = [
    "ConversionJob",
    "ConversionJobStatus",
    "ConversionJobRepository",
]
