"""Backend-agnostic key/value store facade."""

from .database import Database, LegacyDatabase
from .errors import (
    DatabaseNotInitialized,
    DriverError,
    InvalidBackendType,
    KVStoreError,
    UnhandledWriteError,
)
from .storage.registry import BackendType, DEFAULT_BACKEND

__all__ = [
    "Database",
    "LegacyDatabase",
    "BackendType",
    "DEFAULT_BACKEND",
    "DatabaseNotInitialized",
    "DriverError",
    "InvalidBackendType",
    "KVStoreError",
    "UnhandledWriteError",
]
