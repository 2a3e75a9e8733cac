"""Shared implementation for SQL storage drivers.

All SQL drivers keep a two column table ``store(key, value)``. Subclasses
provide the dialect's statements as class attributes and implement the
three connection primitives `_connect`, `_execute` and `_disconnect`.
"""
from __future__ import annotations
from abc import abstractmethod
from typing import Any, List, Optional, Sequence

from .base import AbstractDatabase, LIKE_ESCAPE, like_pattern


class SQLDatabase(AbstractDatabase):
    table = "store"

    # Dialect statements. `{table}` and `{escape}` are substituted by `_sql`;
    # parameters use the client library's own placeholder style.
    create_sql: str = ""
    get_sql: str = ""
    upsert_sql: str = ""
    remove_sql: str = ""
    find_sql: str = ""
    find_not_sql: str = ""

    def _sql(self, template: str) -> str:
        return template.format(table=self.table, escape=LIKE_ESCAPE)

    async def init(self) -> None:
        await self._connect()
        if self.create_sql:
            await self._execute(self._sql(self.create_sql))

    async def close(self) -> None:
        await self._disconnect()

    @abstractmethod
    async def _connect(self) -> None: ...

    @abstractmethod
    async def _disconnect(self) -> None: ...

    @abstractmethod
    async def _execute(self, sql: str, params: Sequence[Any] = (), fetch: bool = False) -> List[tuple]:
        """Run `sql` and return all rows when `fetch` is set, otherwise an empty list."""

    def _pattern(self, key: str) -> str:
        return like_pattern(key)

    async def get(self, key: str) -> Any:
        rows = await self._execute(self._sql(self.get_sql), (key,), fetch=True)
        return rows[0][0] if rows else None

    async def set(self, key: str, value: Any) -> None:
        await self._execute(self._sql(self.upsert_sql), (key, value))

    async def remove(self, key: str) -> None:
        await self._execute(self._sql(self.remove_sql), (key,))

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        if not_key is None:
            rows = await self._execute(self._sql(self.find_sql), (self._pattern(key),), fetch=True)
        else:
            rows = await self._execute(
                self._sql(self.find_not_sql), (self._pattern(key), self._pattern(not_key)), fetch=True,
            )
        return [row[0] for row in rows]

