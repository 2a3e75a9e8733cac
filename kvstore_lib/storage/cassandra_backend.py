"""Apache Cassandra storage driver built on the DataStax `cassandra-driver`.

The keyspace must exist; the table is created on `init`. CQL has no
pattern matching on partition keys, so `find_keys` reads every key and
filters client-side.
"""
from __future__ import annotations
import asyncio
from typing import Any, List, Optional, Sequence

from .base import AbstractDatabase, BulkOperation, DriverSettings, filter_keys, parse_settings


class CassandraSettings(DriverSettings):
    contact_points: List[str] = ["127.0.0.1"]
    port: int = 9042
    keyspace: str = "kvstore"
    table: str = "store"
    username: Optional[str] = None
    password: Optional[str] = None


class CassandraDatabase(AbstractDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(CassandraSettings, settings)
        self._cluster = None
        self._session = None

    def _connect(self) -> None:
        from cassandra.auth import PlainTextAuthProvider
        from cassandra.cluster import Cluster

        opts = self.options
        auth = None
        if opts.username is not None:
            auth = PlainTextAuthProvider(username=opts.username, password=opts.password)
        self._cluster = Cluster(opts.contact_points, port=opts.port, auth_provider=auth)
        self._session = self._cluster.connect(opts.keyspace)
        self._session.execute(
            f'CREATE TABLE IF NOT EXISTS "{opts.table}" (key text PRIMARY KEY, data text)'
        )

    async def init(self) -> None:
        await asyncio.to_thread(self._connect)

    async def close(self) -> None:
        if self._cluster is not None:
            cluster, self._cluster, self._session = self._cluster, None, None
            await asyncio.to_thread(cluster.shutdown)

    async def _execute(self, cql: str, params: Sequence[Any] = ()) -> List[Any]:
        rows = await asyncio.to_thread(self._session.execute, cql, tuple(params))
        return list(rows)

    async def get(self, key: str) -> Any:
        rows = await self._execute(f'SELECT data FROM "{self.options.table}" WHERE key = %s', (key,))
        return rows[0].data if rows else None

    async def set(self, key: str, value: Any) -> None:
        await self._execute(f'INSERT INTO "{self.options.table}" (key, data) VALUES (%s, %s)', (key, value))

    async def remove(self, key: str) -> None:
        await self._execute(f'DELETE FROM "{self.options.table}" WHERE key = %s', (key,))

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        rows = await self._execute(f'SELECT key FROM "{self.options.table}"')
        return filter_keys([row.key for row in rows], key, not_key)

    def _run_batch(self, operations: Sequence[BulkOperation]) -> None:
        from cassandra.query import BatchStatement, BatchType

        batch = BatchStatement(batch_type=BatchType.UNLOGGED)
        table = self.options.table
        for op in operations:
            if op.type == "set":
                batch.add(f'INSERT INTO "{table}" (key, data) VALUES (%s, %s)', (op.key, op.value))
            else:
                batch.add(f'DELETE FROM "{table}" WHERE key = %s', (op.key,))
        self._session.execute(batch)

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        await asyncio.to_thread(self._run_batch, operations)
