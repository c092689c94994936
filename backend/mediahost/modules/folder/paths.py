"""Remote content paths.

Content lives under ``<CONTENT_ROOT>/<login>/<folder>/<file>``. Paths are
always computed from these components and never stored, so renaming a folder
only changes one component.
"""

import posixpath
from typing import Optional

from mediahost.core.config import settings
from mediahost.core.exceptions import InvalidFolderName

MAX_NAME_LENGTH = 255


def validate_folder_name(name: str) -> str:
    """Check that a name can be used as a single directory name.

    Returns:
        The name with surrounding whitespace removed

    Raises:
        InvalidFolderName: If the name is empty, too long or not a single segment
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidFolderName("Folder name must not be empty")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidFolderName(
            f"Folder name must be at most {MAX_NAME_LENGTH} characters",
            detail={"length": len(cleaned)},
        )
    if "/" in cleaned or "\x00" in cleaned or cleaned in (".", ".."):
        raise InvalidFolderName(
            "Folder name must be a single directory name",
            detail={"name": cleaned},
        )
    return cleaned


def account_path(login: str, root: Optional[str] = None) -> str:
    """Directory holding all folders of an account."""
    return posixpath.join(root or settings.CONTENT_ROOT, login)


def folder_path(login: str, folder: str, root: Optional[str] = None) -> str:
    return posixpath.join(account_path(login, root), folder)


def video_path(login: str, folder: str, file_name: str, root: Optional[str] = None) -> str:
    return posixpath.join(folder_path(login, folder, root), file_name)


def relative_folder_path(login: str, folder: str) -> str:
    """Folder path relative to the content root, as used by playlists."""
    return f"{login}/{folder}"


def converted_file_name(file_name: str, bitrate: int) -> str:
    """Name of a conversion output, replacing the final extension.

    ``movie.mp4`` at 1500 kbps becomes ``movie_1500kbps.mp4``. Dots in parent
    directories are left alone; a name without extension gets the suffix
    appended.
    """
    directory, base = posixpath.split(file_name)
    stem, _ = posixpath.splitext(base)
    output = f"{stem}_{bitrate}kbps.mp4"
    return posixpath.join(directory, output) if directory else output


def video_output_path(original_path: str, bitrate: int) -> str:
    """Absolute output path of a conversion next to its source."""
    return converted_file_name(original_path, bitrate)
