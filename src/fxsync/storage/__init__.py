"""Persistence layer -- key/value backends, TTL caches, and typed slice storage."""

from fxsync.storage.backend import KeyValueStorage, MemoryStorage
from fxsync.storage.persistence import Backup, PersistenceService
from fxsync.storage.sqlite_backend import SqliteStorage
from fxsync.storage.ttl_cache import TTLCache

__all__ = [
    "Backup",
    "KeyValueStorage",
    "MemoryStorage",
    "PersistenceService",
    "SqliteStorage",
    "TTLCache",
]
