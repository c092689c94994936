"""Error taxonomy shared by the folder and conversion services.

Each error carries a machine-readable ``reason``, a human readable message and
an optional technical ``detail`` kept apart from the message, so the HTTP
layer can pick a status code without parsing text.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class OrchestratorError(Exception):
    """Base exception for folder and conversion orchestration errors."""

    reason = "orchestrator_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        """Serialize for API responses and batch results."""
        return {
            "reason": self.reason,
            "message": self.message,
            "details": self.detail,
        }


class ValidationError(OrchestratorError):
    """Raised when a request is malformed."""
    reason = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidQuality(ValidationError):
    """Raised when a quality request is unknown or incomplete."""
    reason = "invalid_quality"


class ExceedsCeiling(InvalidQuality):
    """Raised when a requested bitrate exceeds the account's ceiling."""
    reason = "exceeds_ceiling"


class InvalidFolderName(ValidationError):
    """Raised when a folder name cannot be used as a directory name."""
    reason = "invalid_folder_name"


class NotFound(OrchestratorError):
    """Raised when a folder or video is absent or not owned by the caller."""
    reason = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateName(OrchestratorError):
    """Raised when the account already has a folder with the same name."""
    reason = "duplicate_name"
    status_code = status.HTTP_409_CONFLICT


class FolderNotEmpty(OrchestratorError):
    """Raised when a folder still holds videos, playlist items or files."""
    reason = "folder_not_empty"
    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        video_count: int = 0,
        playlist_count: int = 0,
        remote_file_count: int = 0,
    ):
        super().__init__(
            message,
            detail={
                "video_count": video_count,
                "playlist_count": playlist_count,
                "remote_file_count": remote_file_count,
            },
        )
        self.video_count = video_count
        self.playlist_count = playlist_count
        self.remote_file_count = remote_file_count


class SourceNotFound(OrchestratorError):
    """Raised when the video file to convert is missing on the host."""
    reason = "source_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConversionAlreadyExists(OrchestratorError):
    """Raised when a conversion with the same output already exists."""
    reason = "conversion_already_exists"
    status_code = status.HTTP_409_CONFLICT


class NoHostAvailable(OrchestratorError):
    """Raised when no active streaming host can be assigned."""
    reason = "no_host_available"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class RemoteChannelError(OrchestratorError):
    """Raised when the remote command channel fails."""
    reason = "remote_channel_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class RemoteCommandFailed(RemoteChannelError):
    """Raised when a remote command ran but reported failure."""
    reason = "remote_command_failed"


class RemoteCreateFailed(OrchestratorError):
    """Raised when a folder could not be created on the host."""
    reason = "remote_create_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class RemoteRenameFailed(OrchestratorError):
    """Raised when a folder could not be renamed on the host."""
    reason = "remote_rename_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


def to_http_exception(error: OrchestratorError) -> HTTPException:
    """Translate an orchestrator error into an HTTPException."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
