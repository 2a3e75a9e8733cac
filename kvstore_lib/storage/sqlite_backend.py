"""SQLite storage driver (the default, zero-configuration backend).

Uses the standard library `sqlite3` module; blocking calls run in a worker
thread and are serialized on one connection. Without a filename the
database lives in memory and disappears on close.
"""
from __future__ import annotations
import asyncio
import sqlite3
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .base import BulkOperation, DriverSettings, parse_settings
from .sql_backend import SQLDatabase


class SQLiteSettings(DriverSettings):
    filename: str = ":memory:"


class SQLiteDatabase(SQLDatabase):
    create_sql = "CREATE TABLE IF NOT EXISTS {table} (key TEXT PRIMARY KEY, value TEXT)"
    get_sql = "SELECT value FROM {table} WHERE key = ?"
    upsert_sql = "REPLACE INTO {table} VALUES (?, ?)"
    remove_sql = "DELETE FROM {table} WHERE key = ?"
    # GLOB is case sensitive and uses `*` natively, unlike LIKE.
    find_sql = "SELECT key FROM {table} WHERE key GLOB ?"
    find_not_sql = "SELECT key FROM {table} WHERE key GLOB ? AND key NOT GLOB ?"

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(SQLiteSettings, settings, "filename")
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    def _pattern(self, key: str) -> str:
        return key.replace("[", "[[]").replace("?", "[?]")

    async def _connect(self) -> None:
        filename = self.options.filename
        if filename != ":memory:":
            Path(filename).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await asyncio.to_thread(
            sqlite3.connect, filename, check_same_thread=False, isolation_level=None,
        )
        self.logger.debug("Opened sqlite database %s", filename)

    async def _disconnect(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            async with self._lock:
                await asyncio.to_thread(conn.close)

    def _run(self, sql: str, params: Sequence[Any], fetch: bool) -> List[tuple]:
        assert self._conn is not None, "sqlite connection is not open"
        cur = self._conn.execute(sql, tuple(params))
        try:
            return cur.fetchall() if fetch else []
        finally:
            cur.close()

    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        async with self._lock:
            return await asyncio.to_thread(self._run, sql, params, fetch)

    def _run_bulk(self, operations: Sequence[BulkOperation]) -> None:
        assert self._conn is not None, "sqlite connection is not open"
        upsert, remove = self._sql(self.upsert_sql), self._sql(self.remove_sql)
        self._conn.execute("BEGIN")
        try:
            for op in operations:
                if op.type == "set":
                    self._conn.execute(upsert, (op.key, op.value))
                else:
                    self._conn.execute(remove, (op.key,))
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        async with self._lock:
            await asyncio.to_thread(self._run_bulk, operations)
