"""Pydantic schemas for folder operations."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FolderCreateRequest(BaseModel):
    """Request to create a folder."""
    name: str = Field(..., min_length=1, max_length=255, description="Folder name")


class FolderRenameRequest(BaseModel):
    """Request to rename a folder."""
    name: str = Field(..., min_length=1, max_length=255, description="New folder name")


class FolderResponse(BaseModel):
    """Folder metadata."""
    id: uuid.UUID
    name: str
    host_id: Optional[uuid.UUID] = None
    quota_mb: int
    used_mb: int
    percentage_used: float
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderListResponse(BaseModel):
    """Folders of an account."""
    folders: list[FolderResponse]
    total: int


class FolderDeleteResponse(BaseModel):
    """Result of a folder deletion."""
    id: uuid.UUID
    message: str


class FolderServerInfo(BaseModel):
    """State of the folder directory on its streaming host."""
    path: str
    exists: bool = False
    file_count: int = 0
    size_bytes: int = 0
    size_mb: int = 0
    error: Optional[str] = None


class FolderInfoResponse(BaseModel):
    """Folder metadata combined with its remote state."""
    id: uuid.UUID
    name: str
    quota_mb: int
    used_mb: int
    percentage_used: float
    video_count: int
    server_info: FolderServerInfo


class FolderSyncResponse(BaseModel):
    """Result of a folder synchronization."""
    id: uuid.UUID
    name: str
    path: str
    removed_files: int
    untracked_files: list[str] = []
    message: str
