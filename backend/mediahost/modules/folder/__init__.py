"""Folder module.

Account content folders and their reconciliation with streaming hosts.
The service and router are imported from their modules directly.
"""

from mediahost.modules.folder.models import Folder
from mediahost.modules.folder.paths import (
    account_path,
    converted_file_name,
    folder_path,
    relative_folder_path,
    validate_folder_name,
    video_output_path,
    video_path,
)
from mediahost.modules.folder.repository import FolderRepository

__all__ = [
    "Folder",
    "FolderRepository",
    "account_path",
    "converted_file_name",
    "folder_path",
    "relative_folder_path",
    "validate_folder_name",
    "video_output_path",
    "video_path",
]
