"""Append-only file storage driver.

Every write appends one JSON line to the configured file:
``{"key": ..., "val": ...}`` for a set and ``{"key": ...}`` for a removal.
On `init` the file is replayed to rebuild the in-memory dict. Without a
filename the driver keeps everything in memory only.
"""
from __future__ import annotations
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .base import AbstractDatabase, BulkOperation, DriverSettings, filter_keys, parse_settings


class DirtySettings(DriverSettings):
    filename: Optional[str] = None


class DirtyDatabase(AbstractDatabase):
    wrapper_defaults = {"serialize": False, "cache": 0, "write_interval": 0}
    settings_model = DirtySettings

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(self.settings_model, settings, "filename")
        self.path: Optional[Path] = Path(self.options.filename) if self.options.filename else None
        self._data: Dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data = await asyncio.to_thread(self._load)
        self.logger.debug("Loaded %d records from %s", len(self._data), self.path)

    def _load(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.path is None or not self.path.exists():
            return data
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = json.loads(line)
                except json.JSONDecodeError:
                    # A crash mid-append leaves a partial last line behind.
                    self.logger.warning("Skipping corrupted line %d in %s", lineno, self.path)
                    continue
                if "val" in row:
                    data[row["key"]] = row["val"]
                else:
                    data.pop(row.get("key"), None)
        return data

    def _write_lines(self, lines: str) -> None:
        assert self.path is not None
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(lines)
            f.flush()
            os.fsync(f.fileno())

    async def _append(self, rows: Iterable[Dict[str, Any]]) -> None:
        lines = "".join(json.dumps(row) + "\n" for row in rows)
        if self.path is None:
            return
        async with self._lock:
            await asyncio.to_thread(self._write_lines, lines)
            await self._after_write()

    async def _after_write(self) -> None:
        """Hook run after each append while the write lock is held."""

    async def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        await self._append([{"key": key, "val": value}])
        self._data[key] = value

    async def remove(self, key: str) -> None:
        await self._append([{"key": key}])
        self._data.pop(key, None)

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        rows = [
            {"key": op.key, "val": op.value} if op.type == "set" else {"key": op.key}
            for op in operations
        ]
        await self._append(rows)
        for op in operations:
            if op.type == "set":
                self._data[op.key] = op.value
            else:
                self._data.pop(op.key, None)

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        return filter_keys(list(self._data), key, not_key)

    async def close(self) -> None:
        self._data = {}
