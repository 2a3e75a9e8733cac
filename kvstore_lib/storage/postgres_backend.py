"""PostgreSQL storage drivers built on psycopg 3.

`postgres` uses a single async connection, `postgrespool` an
`psycopg_pool.AsyncConnectionPool`. Settings are either a libpq
connection string or a mapping of connection parameters.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

from .base import DriverSettings, parse_settings
from .sql_backend import SQLDatabase


class PostgresSettings(DriverSettings):
    conninfo: str = ""
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    min_size: int = 1
    max_size: int = 10

    def connect_kwargs(self) -> Dict[str, Any]:
        params = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "dbname": self.database,
        }
        params.update(self.model_extra or {})
        return {k: v for k, v in params.items() if v is not None}


class PostgresDatabase(SQLDatabase):
    create_sql = (
        'CREATE TABLE IF NOT EXISTS {table} ('
        '"key" VARCHAR(100) NOT NULL PRIMARY KEY, "value" TEXT NOT NULL)'
    )
    get_sql = 'SELECT "value" FROM {table} WHERE "key" = %s'
    upsert_sql = (
        'INSERT INTO {table} ("key", "value") VALUES (%s, %s) '
        'ON CONFLICT ("key") DO UPDATE SET "value" = excluded."value"'
    )
    remove_sql = 'DELETE FROM {table} WHERE "key" = %s'
    find_sql = "SELECT \"key\" FROM {table} WHERE \"key\" LIKE %s ESCAPE '{escape}'"
    find_not_sql = (
        "SELECT \"key\" FROM {table} WHERE \"key\" LIKE %s ESCAPE '{escape}' "
        "AND \"key\" NOT LIKE %s ESCAPE '{escape}'"
    )

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(PostgresSettings, settings, "conninfo")
        self._conn = None

    async def _connect(self) -> None:
        import psycopg

        self._conn = await psycopg.AsyncConnection.connect(
            self.options.conninfo, autocommit=True, **self.options.connect_kwargs(),
        )

    async def _disconnect(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        async with self._conn.cursor() as cur:
            await cur.execute(sql, tuple(params))
            return list(await cur.fetchall()) if fetch else []


class PostgresPoolDatabase(PostgresDatabase):
    async def _connect(self) -> None:
        from psycopg_pool import AsyncConnectionPool

        self._pool = AsyncConnectionPool(
            self.options.conninfo,
            kwargs={"autocommit": True, **self.options.connect_kwargs()},
            min_size=self.options.min_size,
            max_size=self.options.max_size,
            open=False,
        )
        await self._pool.open(wait=True)

    async def _disconnect(self) -> None:
        pool = getattr(self, "_pool", None)
        if pool is not None:
            self._pool = None
            await pool.close()

    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        async with self._pool.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            return list(await cur.fetchall()) if fetch else []
