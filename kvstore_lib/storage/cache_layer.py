"""Caching and write-buffering layer wrapped around a storage driver.

`CacheAndBufferLayer` sits between the `Database` facade and a raw driver.
It handles:
- an LRU cache of decoded values (bounded by the `cache` setting)
- write buffering: writes are committed by a background flusher every
  `write_interval` seconds, or immediately when the interval is 0
- coalescing of superseded writes that were not yet sent to the driver
- sub-value reads and writes inside stored mappings
- value (de)serialization for drivers that store text
- per-key locking and metrics collection
"""
from __future__ import annotations
import asyncio
import copy
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, asdict
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from .accessor import DictAccessor, SubPath, normalize_path
from .base import AbstractDatabase, BulkOperation
from .serializer import Serializer, create_serializer


class CacheSettings(BaseModel):
    """Settings of the cache layer. Unknown options are rejected."""

    model_config = ConfigDict(extra="forbid")

    cache: int = 10000
    write_interval: float = 0.1
    bulk_limit: int = 0
    serialize: bool = True
    serializer: str = "json"
    password: Optional[str] = None
    key: Optional[str] = None


@dataclass
class Metrics:
    """Counters describing the work done by a `CacheAndBufferLayer`."""

    lock_acquires: int = 0
    lock_awaits: int = 0
    lock_releases: int = 0
    reads: int = 0
    reads_failed: int = 0
    reads_finished: int = 0
    reads_from_cache: int = 0
    reads_from_db: int = 0
    reads_from_db_failed: int = 0
    reads_from_db_finished: int = 0
    writes: int = 0
    writes_failed: int = 0
    writes_finished: int = 0
    writes_obsoleted: int = 0
    writes_to_db: int = 0
    writes_to_db_failed: int = 0
    writes_to_db_finished: int = 0
    writes_to_db_retried: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class _Entry:
    value: Any
    # Commit future of a value not yet handed to the driver.
    dirty: Optional[asyncio.Future] = None
    # Commit future of a value currently being written.
    writing: Optional[asyncio.Future] = None


_WriteItem = Tuple[str, _Entry, Any, asyncio.Future]


def _settle_from(fut: asyncio.Future, source: asyncio.Future) -> None:
    if fut.done():
        return
    if source.cancelled():
        fut.cancel()
    elif source.exception() is not None:
        fut.set_exception(source.exception())
    else:
        fut.set_result(None)


def merge_settings(driver: AbstractDatabase, settings: Any) -> CacheSettings:
    """Layer caller settings over the driver's `wrapper_defaults`."""
    if isinstance(settings, BaseModel):
        settings = settings.model_dump(exclude_unset=True)
    merged = dict(getattr(driver, "wrapper_defaults", {}) or {})
    merged.update(settings or {})
    return CacheSettings.model_validate(merged)


class CacheAndBufferLayer:
    def __init__(self, driver: AbstractDatabase, settings: Any = None, logger: Optional[logging.Logger] = None) -> None:
        self.driver = driver
        self.settings = merge_settings(driver, settings)
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = Metrics()
        self._serializer: Optional[Serializer] = None
        if self.settings.serialize:
            self._serializer = create_serializer(
                self.settings.serializer, key=self.settings.key, password=self.settings.password,
            )
        self._accessor = DictAccessor()
        self._buffer: "OrderedDict[str, _Entry]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._flusher: Optional[asyncio.Task] = None

    async def init(self) -> None:
        await self.driver.init()
        if self.settings.write_interval > 0:
            self._flusher = asyncio.get_running_loop().create_task(self._flush_periodically())
        self.logger.debug(
            "Cache layer ready (driver=%s cache=%d write_interval=%s)",
            type(self.driver).__name__, self.settings.cache, self.settings.write_interval,
        )

    async def stop(self) -> None:
        """Stop the background flusher and commit pending writes. The driver stays open."""
        if self._flusher is not None:
            self._flusher.cancel()
            with suppress(asyncio.CancelledError):
                await self._flusher
            self._flusher = None
        await self.flush()
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        """Stop the background flusher, flush pending writes and close the driver."""
        try:
            await self.stop()
        finally:
            await self.driver.close()
            self.logger.debug("Cache layer closed")

    # Locking

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        if lock.locked():
            self.metrics.lock_awaits += 1
        try:
            async with lock:
                self.metrics.lock_acquires += 1
                try:
                    yield
                finally:
                    self.metrics.lock_releases += 1
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    # Reads

    async def get(self, key: str) -> Any:
        async with self._locked(key):
            return copy.deepcopy(await self._get_locked(key))

    async def get_sub(self, key: str, sub: SubPath) -> Any:
        path = normalize_path(sub)
        async with self._locked(key):
            value = await self._get_locked(key)
            return copy.deepcopy(self._accessor.get(value, path))

    async def _get_locked(self, key: str) -> Any:
        self.metrics.reads += 1
        try:
            entry = self._buffer.get(key)
            if entry is not None:
                self.metrics.reads_from_cache += 1
                self._buffer.move_to_end(key)
                return entry.value
            self.metrics.reads_from_db += 1
            try:
                value = self._decode(await self.driver.get(key))
            except Exception:
                self.metrics.reads_from_db_failed += 1
                raise
            finally:
                self.metrics.reads_from_db_finished += 1
            if self.settings.cache > 0:
                self._buffer[key] = _Entry(value)
                self._evict()
            return value
        except Exception:
            self.metrics.reads_failed += 1
            raise
        finally:
            self.metrics.reads_finished += 1

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        await self.flush()
        return list(await self.driver.find_keys(key, not_key))

    # Writes

    async def set(self, key: str, value: Any) -> None:
        async with self._locked(key):
            fut = self._set_locked(key, value)
        await self._await_write(fut)

    async def remove(self, key: str) -> None:
        await self.set(key, None)

    async def set_sub(self, key: str, sub: SubPath, value: Any) -> None:
        path = normalize_path(sub)
        async with self._locked(key):
            base = copy.deepcopy(await self._get_locked(key))
            fut = self._set_locked(key, self._accessor.set(base, path, value))
        await self._await_write(fut)

    async def _await_write(self, fut: asyncio.Future) -> None:
        try:
            await fut
        except Exception:
            self.metrics.writes_failed += 1
            raise
        finally:
            self.metrics.writes_finished += 1

    def _set_locked(self, key: str, value: Any) -> asyncio.Future:
        self.metrics.writes += 1
        value = copy.deepcopy(value)
        entry = self._buffer.get(key)
        if entry is not None and entry.dirty is not None:
            self.metrics.writes_obsoleted += 1
            entry.value = value
            fut = entry.dirty
        else:
            fut = asyncio.get_running_loop().create_future()
            if entry is None:
                entry = self._buffer[key] = _Entry(value)
            entry.value = value
            entry.dirty = fut
        self._buffer.move_to_end(key)
        if self.settings.write_interval <= 0:
            self._spawn_flush()
        return fut

    async def flush(self) -> None:
        """Commit every buffered write and wait for writes already in flight."""
        pending = [
            f for entry in self._buffer.values() for f in (entry.dirty, entry.writing) if f is not None
        ]
        await self._write_dirty()
        if not pending:
            return
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _spawn_flush(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._write_dirty())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _flush_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.settings.write_interval)
            # Cancelling the flusher must not interrupt a write already sent to the driver.
            await asyncio.shield(self._spawn_flush())

    async def _write_dirty(self) -> None:
        batch: List[_WriteItem] = []
        for key, entry in self._buffer.items():
            # One write per key in flight; the next one starts when it completes.
            if entry.dirty is not None and entry.writing is None:
                fut, entry.dirty = entry.dirty, None
                entry.writing = fut
                batch.append((key, entry, entry.value, fut))
        if not batch:
            return
        limit = self.settings.bulk_limit or len(batch)
        await asyncio.gather(*(self._write_chunk(batch[i:i + limit]) for i in range(0, len(batch), limit)))

    async def _write_chunk(self, chunk: List[_WriteItem]) -> None:
        if len(chunk) == 1:
            await self._write_single(chunk[0])
            return
        ops: List[BulkOperation] = []
        ready: List[_WriteItem] = []
        for item in chunk:
            try:
                ops.append(self._to_operation(item[0], item[2]))
            except Exception as exc:
                self._complete(item, exc)
            else:
                ready.append(item)
        if not ops:
            return
        self.metrics.writes_to_db += len(ops)
        try:
            await self.driver.do_bulk(ops)
        except asyncio.CancelledError:
            for item in ready:
                self._requeue(item)
            raise
        except Exception as exc:
            self.logger.warning("Bulk write of %d records failed, retrying individually: %s", len(ops), exc)
            self.metrics.writes_to_db_retried += len(ops)
            await asyncio.gather(*(self._write_single(item) for item in ready))
            return
        for item in ready:
            self._complete(item)

    async def _write_single(self, item: _WriteItem) -> None:
        key, _, value, _ = item
        try:
            op = self._to_operation(key, value)
            self.metrics.writes_to_db += 1
            if op.type == "remove":
                await self.driver.remove(key)
            else:
                await self.driver.set(key, op.value)
        except asyncio.CancelledError:
            self._requeue(item)
            raise
        except Exception as exc:
            self._complete(item, exc)
        else:
            self._complete(item)

    def _requeue(self, item: _WriteItem) -> None:
        """Mark an interrupted write dirty again so the next flush commits it."""
        key, entry, _, fut = item
        entry.writing = None
        self.logger.debug("Write of %r interrupted, re-queued", key)
        if entry.dirty is None:
            entry.dirty = fut
        elif not fut.done():
            # A newer value is already queued and covers this one.
            entry.dirty.add_done_callback(lambda newer: _settle_from(fut, newer))

    def _complete(self, item: _WriteItem, exc: Optional[BaseException] = None) -> None:
        key, entry, _, fut = item
        entry.writing = None
        if exc is None:
            self.metrics.writes_to_db_finished += 1
            if not fut.done():
                fut.set_result(None)
        else:
            self.metrics.writes_to_db_failed += 1
            self.logger.error("Failed to write %r to the database: %s", key, exc)
            if not fut.done():
                fut.set_exception(exc)
            # The cached value no longer reflects what is stored.
            if entry.dirty is None and self._buffer.get(key) is entry:
                del self._buffer[key]
        if entry.dirty is not None:
            self._spawn_flush()
        self._evict()

    def _evict(self) -> None:
        excess = len(self._buffer) - max(self.settings.cache, 0)
        if excess <= 0:
            return
        for key in list(self._buffer):
            if excess <= 0:
                break
            entry = self._buffer[key]
            if entry.dirty is None and entry.writing is None and key not in self._locks:
                del self._buffer[key]
                excess -= 1

    # Serialization

    def _to_operation(self, key: str, value: Any) -> BulkOperation:
        if value is None:
            return BulkOperation("remove", key)
        return BulkOperation("set", key, self._encode(value))

    def _encode(self, value: Any) -> Any:
        if self._serializer is None:
            return value
        return self._serializer.dump(value)

    def _decode(self, raw: Any) -> Any:
        if raw is None or self._serializer is None:
            return raw
        return self._serializer.load(raw)
