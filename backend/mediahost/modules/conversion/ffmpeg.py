"""FFmpeg command lines for conversions on streaming hosts.

The command runs on the host through the remote executor and reports its
outcome with a marker line instead of an exit status.
"""

import shlex
from dataclasses import dataclass
from typing import Optional

from mediahost.core.config import settings

CONVERSION_SUCCESS_MARKER = "CONVERSION_SUCCESS"
CONVERSION_ERROR_MARKER = "CONVERSION_ERROR"


@dataclass
class FFmpegConfig:
    """Configuration for one conversion."""
    input_path: str
    output_path: str
    bitrate: int  # kbps
    width: int
    height: int
    preset: Optional[str] = None
    crf: Optional[int] = None
    audio_bitrate: Optional[int] = None  # kbps


class FFmpegCommandBuilder:
    """Builds H.264/AAC MP4 conversion commands."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH

    def build_args(self, config: FFmpegConfig) -> list[str]:
        """Build the FFmpeg argument list.

        The video bitrate is capped with maxrate and a buffer of twice the
        bitrate; the output is written straight to its final name.
        """
        preset = config.preset or settings.FFMPEG_PRESET
        crf = config.crf if config.crf is not None else settings.FFMPEG_CRF
        audio_bitrate = config.audio_bitrate or settings.AUDIO_BITRATE_KBPS

        return [
            self.ffmpeg_path,
            "-i", config.input_path,
            # Video settings
            "-c:v", "libx264",
            "-preset", preset,
            "-crf", str(crf),
            "-b:v", f"{config.bitrate}k",
            "-maxrate", f"{config.bitrate}k",
            "-bufsize", f"{config.bitrate * 2}k",
            "-vf", f"scale={config.width}:{config.height}",
            # Audio settings
            "-c:a", "aac",
            "-b:a", f"{audio_bitrate}k",
            # Output format
            "-movflags", "+faststart",
            config.output_path,
            "-y",
        ]

    def build_remote_command(self, config: FFmpegConfig) -> str:
        """Build the shell command line that prints a success or error marker."""
        command = " ".join(shlex.quote(arg) for arg in self.build_args(config))
        return (
            f"{command} 2>/dev/null && echo {CONVERSION_SUCCESS_MARKER} "
            f"|| echo {CONVERSION_ERROR_MARKER}"
        )


def conversion_succeeded(stdout: str) -> bool:
    """Check the command output for the success marker on a line of its own."""
    lines = {line.strip() for line in stdout.splitlines()}
    return CONVERSION_SUCCESS_MARKER in lines and CONVERSION_ERROR_MARKER not in lines
