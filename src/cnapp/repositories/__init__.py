from .base_repository import BaseRepository
from .user_repository import SQLUserRepository, format_timestamp, TIMESTAMP_FORMAT

__all__ = ["BaseRepository", "SQLUserRepository", "format_timestamp", "TIMESTAMP_FORMAT"]
