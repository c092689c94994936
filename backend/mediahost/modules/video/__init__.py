"""Video catalog module."""

from mediahost.modules.video.models import PlaylistEntry, Video
from mediahost.modules.video.repository import PlaylistEntryRepository, VideoRepository

__all__ = [
    "PlaylistEntry",
    "PlaylistEntryRepository",
    "Video",
    "VideoRepository",
]
