"""The `Database` facade.

A `Database` records which storage backend to use and how to configure it;
`init()` resolves the driver through the backend registry, wraps it in the
caching/buffering layer and waits for it to become ready. Every other
operation is forwarded to that layer.

Two calling conventions are offered:

    db = Database('sqlite', {'filename': 'var/kv.sqlite'})
    await db.init()
    await db.set('k', {'a': 1})

and, for code written against completion callbacks, the `legacy` adapter:

    db.legacy.set('k', {'a': 1}, lambda err: ...)
    db.legacy.get('k', lambda err, value: ...)
"""
from __future__ import annotations
import warnings
from typing import Any, List, Optional, Union

from kvstore_lib.callbacks import Callback, callbackify, make_done_callback
from kvstore_lib.errors import DatabaseNotInitialized
from kvstore_lib.logging_config import normalize_logger
from kvstore_lib.storage.accessor import SubPath
from kvstore_lib.storage.base import AbstractDatabase
from kvstore_lib.storage.cache_layer import CacheAndBufferLayer, Metrics
from kvstore_lib.storage.interfaces import CacheLayerProtocol
from kvstore_lib.storage.registry import DEFAULT_BACKEND, BackendType, resolve


class Database:
    def __init__(
        self,
        type: Union[str, BackendType, None] = None,
        settings: Any = None,
        wrapper_settings: Any = None,
        logger: Any = None,
    ) -> None:
        """Capture configuration; no I/O happens until `init()`.

        Args:
            type: backend type identifier; when omitted the embedded default
                backend is used with empty settings.
            settings: backend specific settings, passed to the driver as is.
            wrapper_settings: settings of the caching/buffering layer.
            logger: optional logger. If None no logging occurs. Stdlib
                loggers are used directly; other logger objects are adapted
                (see `normalize_logger`).
        """
        if not type:
            type = DEFAULT_BACKEND
            settings = None
            wrapper_settings = None
        self.type = type
        self.settings = settings
        self.wrapper_settings = wrapper_settings
        self.logger = normalize_logger(logger)
        self.driver: Optional[AbstractDatabase] = None
        self.db: Optional[CacheLayerProtocol] = None
        self._metrics: Optional[Metrics] = None
        self._legacy: Optional[LegacyDatabase] = None

    def __repr__(self) -> str:
        return f"Database(type={self.type!r}, ready={self.db is not None})"

    @property
    def metrics(self) -> Optional[Metrics]:
        """Metrics of the caching layer; None before `init()`."""
        return self._metrics

    @property
    def legacy(self) -> LegacyDatabase:
        """Completion-callback flavored view of this database."""
        if self._legacy is None:
            self._legacy = LegacyDatabase(self)
        return self._legacy

    def _require_db(self) -> CacheLayerProtocol:
        if self.db is None:
            raise DatabaseNotInitialized("Database.init() has not been called")
        return self.db

    async def init(self) -> None:
        if self.db is not None:
            self.logger.warning(
                "Database already initialized; flushing the previous layer and re-wrapping a new %s driver "
                "(the previous driver is left open)", self.type,
            )
            await self.db.stop()
        driver = resolve(self.type, self.settings)
        driver.logger = self.logger
        self.driver = driver
        self.db = CacheAndBufferLayer(driver, self.wrapper_settings, self.logger)
        self._metrics = self.db.metrics
        await self.db.init()

    async def __aenter__(self) -> Database:
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def flush(self) -> None:
        """Write any unsaved changes to the underlying database."""
        await self._require_db().flush()

    async def shutdown(self) -> None:
        """Deprecated synonym of `flush()`."""
        warnings.warn("Database.shutdown() is deprecated, use flush()", DeprecationWarning, stacklevel=2)
        await self.flush()

    async def get(self, key: str) -> Any:
        return await self._require_db().get(key)

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        return await self._require_db().find_keys(key, not_key)

    async def remove(self, key: str) -> None:
        """Remove an entry if present; returns once the removal is committed."""
        await self._require_db().remove(key)

    async def set(self, key: str, value: Any) -> None:
        """Add or change an entry; returns once the write is committed."""
        await self._require_db().set(key, value)

    async def get_sub(self, key: str, sub: SubPath) -> Any:
        return await self._require_db().get_sub(key, sub)

    async def set_sub(self, key: str, sub: SubPath, value: Any) -> None:
        """Add or change a sub-value of an entry; returns once committed."""
        await self._require_db().set_sub(key, sub, value)

    async def close(self) -> None:
        """Flush unwritten changes, then close the underlying driver.

        Any later call on this object is unsupported and may fail.
        """
        await self._require_db().close()


class LegacyDatabase:
    """Completion-callback entry points for a `Database`.

    Read operations take one ``callback(err, result)``. `set`, `remove` and
    `set_sub` take ``cb(err)`` and an optional ``deprecated(err)`` called
    just after it; when a write fails and neither is given the failure is
    raised as `UnhandledWriteError` through the event loop's exception
    handler. Every method returns the scheduled `asyncio.Task`.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def init(self, callback: Callback):
        return callbackify(self._db.init)(callback=callback)

    def flush(self, callback: Callback):
        return callbackify(self._db.flush)(callback=callback)

    def shutdown(self, callback: Callback):
        return self.flush(callback)

    def close(self, callback: Callback):
        return callbackify(self._db.close)(callback=callback)

    def get(self, key: str, callback: Callback):
        return callbackify(self._db.get)(key, callback=callback)

    def find_keys(self, key: str, not_key: Optional[str], callback: Callback):
        return callbackify(self._db.find_keys)(key, not_key, callback=callback)

    def get_sub(self, key: str, sub: SubPath, callback: Callback):
        return callbackify(self._db.get_sub)(key, sub, callback=callback)

    def remove(self, key: str, cb: Optional[Callback] = None, deprecated: Optional[Callback] = None):
        return callbackify(self._db.remove)(key, callback=make_done_callback(cb, deprecated))

    def set(self, key: str, value: Any, cb: Optional[Callback] = None, deprecated: Optional[Callback] = None):
        return callbackify(self._db.set)(key, value, callback=make_done_callback(cb, deprecated))

    def set_sub(
        self,
        key: str,
        sub: SubPath,
        value: Any,
        cb: Optional[Callback] = None,
        deprecated: Optional[Callback] = None,
    ):
        return callbackify(self._db.set_sub)(key, sub, value, callback=make_done_callback(cb, deprecated))
