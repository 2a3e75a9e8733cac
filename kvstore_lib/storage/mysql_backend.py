"""MySQL / MariaDB storage driver built on aiomysql."""
from __future__ import annotations
from typing import Any, List, Optional, Sequence

from .base import DriverSettings, parse_settings
from .sql_backend import SQLDatabase


class MySQLSettings(DriverSettings):
    host: str = "localhost"
    port: int = 3306
    user: Optional[str] = None
    password: str = ""
    database: Optional[str] = None
    charset: str = "utf8mb4"
    max_size: int = 10


class MySQLDatabase(SQLDatabase):
    create_sql = (
        "CREATE TABLE IF NOT EXISTS `{table}` ("
        "`key` VARCHAR(100) NOT NULL COLLATE utf8mb4_bin, "
        "`value` LONGTEXT NOT NULL COLLATE utf8mb4_bin, "
        "PRIMARY KEY (`key`)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
    )
    get_sql = "SELECT `value` FROM `{table}` WHERE `key` = %s"
    upsert_sql = "REPLACE INTO `{table}` (`key`, `value`) VALUES (%s, %s)"
    remove_sql = "DELETE FROM `{table}` WHERE `key` = %s"
    find_sql = "SELECT `key` FROM `{table}` WHERE `key` LIKE %s ESCAPE '{escape}'"
    find_not_sql = (
        "SELECT `key` FROM `{table}` WHERE `key` LIKE %s ESCAPE '{escape}' "
        "AND `key` NOT LIKE %s ESCAPE '{escape}'"
    )

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(MySQLSettings, settings)
        self._pool = None

    async def _connect(self) -> None:
        import aiomysql

        opts = self.options
        self._pool = await aiomysql.create_pool(
            host=opts.host,
            port=opts.port,
            user=opts.user,
            password=opts.password,
            db=opts.database,
            charset=opts.charset,
            maxsize=opts.max_size,
            autocommit=True,
            **(opts.model_extra or {}),
        )

    async def _disconnect(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            pool.close()
            await pool.wait_closed()

    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        async with self._pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, tuple(params) or None)
                return list(await cur.fetchall()) if fetch else []
