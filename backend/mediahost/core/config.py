"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Media Host Orchestrator API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Redis - REQUIRED (Celery broker)
    REDIS_URL: str

    # CORS
    CORS_ORIGINS: list[str] = []

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Celery (fall back to REDIS_URL when empty)
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    # Remote content layout on streaming hosts
    CONTENT_ROOT: str = "/usr/local/WowzaStreamingEngine/content"
    CONTENT_OWNER: str = "wowza:wowza"
    DIRECTORY_MODE: str = "755"
    CONVERTED_FILE_MODE: str = "644"

    # SSH access to streaming hosts
    SSH_USER: str = "root"
    SSH_PORT: int = 22
    SSH_KEY_FILE: Optional[str] = None
    SSH_PASSWORD: Optional[str] = None
    SSH_CONNECT_TIMEOUT_SECONDS: float = 30.0
    SSH_COMMAND_TIMEOUT_SECONDS: Optional[float] = None

    # FFmpeg on streaming hosts
    FFMPEG_PATH: str = "ffmpeg"
    FFMPEG_PRESET: str = "fast"
    FFMPEG_CRF: int = 23
    AUDIO_BITRATE_KBPS: int = 128

    # Plan defaults
    DEFAULT_BITRATE_CEILING_KBPS: int = 2500
    DEFAULT_FOLDER_QUOTA_MB: int = 1000

    # Conversion status source: "jobs" (conversion job table) or
    # "inference" (remote file existence)
    CONVERSION_STATUS_MODE: str = "jobs"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
