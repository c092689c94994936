"""Core module for configuration and utilities."""

from mediahost.core.config import settings
from mediahost.core.database import Base, get_db

__all__ = [
    "settings",
    "Base",
    "get_db",
]
