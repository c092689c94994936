"""Pydantic schemas for conversion operations."""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from mediahost.modules.quality.schemas import QualityOptionResponse, QualitySelection


class ConversionState(str, Enum):
    """Conversion status reported to callers."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"
    AVAILABLE = "available"


class VideoConversionInfo(BaseModel):
    """A video with its conversion options."""
    id: uuid.UUID
    name: str
    folder_id: uuid.UUID
    folder_name: Optional[str] = None
    file_name: str
    duration_seconds: int
    file_size: int
    current_bitrate: Optional[int] = None
    bitrate_ceiling: int
    resolution: Optional[str] = None
    original_format: Optional[str] = None
    is_mp4: bool
    needs_conversion: bool
    can_use_current: bool
    conversion_status: ConversionState
    conversion_label: Optional[str] = None
    source_video_id: Optional[uuid.UUID] = None
    available_qualities: list[QualityOptionResponse] = []


class VideoConversionListResponse(BaseModel):
    """Videos of an account with conversion options."""
    videos: list[VideoConversionInfo]
    total: int
    bitrate_ceiling: int


class ConversionRequest(QualitySelection):
    """Request to convert one video."""
    video_id: uuid.UUID


class BatchConversionRequest(QualitySelection):
    """Request to convert several videos with the same quality.

    Without a quality the highest tier the plan allows is used.
    """
    video_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)


class ConversionAcceptedResponse(BaseModel):
    """Conversion accepted and dispatched."""
    conversion_id: str
    job_id: uuid.UUID
    video_id: uuid.UUID
    target_bitrate: int
    target_resolution: str
    quality_label: str
    message: str


class BatchConversionItem(BaseModel):
    """Outcome of one video in a batch."""
    video_id: uuid.UUID
    success: bool
    conversion: Optional[ConversionAcceptedResponse] = None
    reason: Optional[str] = None
    error: Optional[str] = None


class BatchConversionResponse(BaseModel):
    """Outcome of a batch conversion request."""
    results: list[BatchConversionItem]
    accepted: int
    total: int


class ConversionStatusResponse(BaseModel):
    """Conversion status for a reference."""
    reference: str
    status: ConversionState
    progress: int = Field(0, ge=0, le=100)
    quality: Optional[str] = None
    bitrate: Optional[int] = None
    file_size: Optional[int] = None
    error: Optional[str] = None


class ConversionDeleteResponse(BaseModel):
    """Result of deleting a converted video."""
    video_id: uuid.UUID
    remote_file_removed: bool
    message: str
