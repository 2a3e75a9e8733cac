"""Microsoft SQL Server storage driver built on pymssql.

pymssql is blocking, so calls run in a worker thread and are serialized on
a single connection.
"""
from __future__ import annotations
import asyncio
from typing import Any, List, Optional, Sequence

from .base import DriverSettings, parse_settings
from .sql_backend import SQLDatabase


class MSSQLSettings(DriverSettings):
    server: str = "localhost"
    port: int = 1433
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None


class MSSQLDatabase(SQLDatabase):
    create_sql = (
        "IF OBJECT_ID(N'{table}', N'U') IS NULL "
        "CREATE TABLE [{table}] ([key] NVARCHAR(100) NOT NULL PRIMARY KEY, [value] NVARCHAR(MAX) NOT NULL)"
    )
    get_sql = "SELECT [value] FROM [{table}] WHERE [key] = %s"
    upsert_sql = (
        "MERGE [{table}] WITH (HOLDLOCK) AS t USING (SELECT %s AS [key], %s AS [value]) AS s "
        "ON t.[key] = s.[key] "
        "WHEN MATCHED THEN UPDATE SET t.[value] = s.[value] "
        "WHEN NOT MATCHED THEN INSERT ([key], [value]) VALUES (s.[key], s.[value]);"
    )
    remove_sql = "DELETE FROM [{table}] WHERE [key] = %s"
    find_sql = "SELECT [key] FROM [{table}] WHERE [key] LIKE %s ESCAPE '{escape}'"
    find_not_sql = (
        "SELECT [key] FROM [{table}] WHERE [key] LIKE %s ESCAPE '{escape}' "
        "AND [key] NOT LIKE %s ESCAPE '{escape}'"
    )

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(MSSQLSettings, settings)
        self._conn = None
        self._lock = asyncio.Lock()

    async def _connect(self) -> None:
        import pymssql

        opts = self.options
        self._conn = await asyncio.to_thread(
            pymssql.connect,
            server=opts.server,
            port=str(opts.port),
            user=opts.user,
            password=opts.password,
            database=opts.database,
            autocommit=True,
            **(opts.model_extra or {}),
        )

    async def _disconnect(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            async with self._lock:
                await asyncio.to_thread(conn.close)

    def _run(self, sql: str, params: Sequence[Any], fetch: bool) -> List[tuple]:
        cur = self._conn.cursor()
        try:
            cur.execute(sql, tuple(params) or None)
            return list(cur.fetchall()) if fetch else []
        finally:
            cur.close()

    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        async with self._lock:
            return await asyncio.to_thread(self._run, sql, params, fetch)
