"""Exception types raised by kvstore_lib.

Errors produced by drivers or the cache layer are passed through unchanged;
only the types below are synthesized by the library itself.
"""
from __future__ import annotations
from typing import Any


class KVStoreError(Exception):
    """Base class for errors raised by kvstore_lib."""


class InvalidBackendType(KVStoreError, ValueError):
    """The configured backend type is not one of the supported identifiers."""

    def __init__(self, type_id: Any) -> None:
        super().__init__(f"Invalid database type: {type_id!r}")
        self.type_id = type_id


class DatabaseNotInitialized(KVStoreError, RuntimeError):
    """An operation was issued before `Database.init()` completed."""


class UnhandledWriteError(KVStoreError):
    """A write failed and the caller supplied no completion handler.

    The original error is available as `error` and as `__cause__`.
    """

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"Unhandled write error: {error!r}")
        self.error = error


class DriverError(KVStoreError):
    """A storage engine reported a failure with no native Python exception."""
