"""Repository implementations."""

from civicscrape.repository.base import Refresh, Repository
from civicscrape.repository.memory_repository import MemoryRepository
from civicscrape.repository.sqlite_repository import SQLiteDatabase, SQLiteRepository
from civicscrape.repository.redis_repository import RedisRepository

__all__ = [
    "Refresh",
    "Repository",
    "MemoryRepository",
    "SQLiteDatabase",
    "SQLiteRepository",
    "RedisRepository",
]
