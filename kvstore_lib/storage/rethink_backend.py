"""RethinkDB storage driver built on the official `rethinkdb` client.

The client is used in its blocking mode; calls run in a worker thread and
are serialized on one connection.
"""
from __future__ import annotations
import asyncio
from typing import Any, Callable, List, Optional, Sequence

from .base import AbstractDatabase, BulkOperation, DriverSettings, create_find_regex, parse_settings


class RethinkSettings(DriverSettings):
    host: str = "localhost"
    port: int = 28015
    db: str = "kvstore"
    table: str = "store"
    user: str = "admin"
    password: str = ""


class RethinkDatabase(AbstractDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(RethinkSettings, settings)
        self._r = None
        self._conn = None
        self._lock = asyncio.Lock()

    async def _run(self, build: Callable[[Any], Any]) -> Any:
        """Build a query from the table handle and run it in a worker thread."""
        def run() -> Any:
            result = build(self._r.table(self.options.table)).run(self._conn)
            # Cursors must be drained on the thread that owns the connection.
            return result if isinstance(result, (dict, type(None))) else list(result)

        async with self._lock:
            return await asyncio.to_thread(run)

    def _connect(self) -> None:
        from rethinkdb import RethinkDB

        opts = self.options
        self._r = r = RethinkDB()
        self._conn = r.connect(host=opts.host, port=opts.port, user=opts.user, password=opts.password)
        if opts.db not in r.db_list().run(self._conn):
            r.db_create(opts.db).run(self._conn)
        self._conn.use(opts.db)
        if opts.table not in r.table_list().run(self._conn):
            r.table_create(opts.table).run(self._conn)

    async def init(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._connect)

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            async with self._lock:
                await asyncio.to_thread(conn.close)

    async def get(self, key: str) -> Any:
        doc = await self._run(lambda t: t.get(key))
        return doc.get("content") if doc else None

    async def set(self, key: str, value: Any) -> None:
        await self._run(lambda t: t.insert({"id": key, "content": value}, conflict="replace"))

    async def remove(self, key: str) -> None:
        await self._run(lambda t: t.get(key).delete())

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        regex, not_regex = create_find_regex(key, not_key)
        r = self._r

        def build(t: Any) -> Any:
            cond = r.row["id"].match(regex.pattern)
            if not_regex is not None:
                cond = cond.and_(r.row["id"].match(not_regex.pattern).eq(None))
            return t.filter(cond).pluck("id")

        return [doc["id"] for doc in await self._run(build)]

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        sets = [{"id": op.key, "content": op.value} for op in operations if op.type == "set"]
        removes = [op.key for op in operations if op.type == "remove"]
        if sets:
            await self._run(lambda t: t.insert(sets, conflict="replace"))
        if removes:
            await self._run(lambda t: t.get_all(*removes).delete())
