"""SurrealDB storage driver using the HTTP ``/sql`` endpoint over httpx.

Keys and values are embedded in statements as JSON-escaped string
literals, which SurrealQL accepts verbatim.
"""
from __future__ import annotations
import json
from typing import Any, Dict, List, Optional

from kvstore_lib.errors import DriverError

from .base import filter_keys, parse_settings
from .http_backend import HTTPDatabase, HTTPSettings


def _literal(value: str) -> str:
    return json.dumps(value)


class SurrealSettings(HTTPSettings):
    url: str = "http://localhost:8000"
    namespace: str = "kvstore"
    database: str = "kvstore"
    table: str = "store"


class SurrealDatabase(HTTPDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(SurrealSettings, settings, "url")

    def _client_kwargs(self) -> dict:
        return {
            "headers": {
                "Accept": "application/json",
                "surreal-ns": self.options.namespace,
                "surreal-db": self.options.database,
            },
        }

    def _thing(self, key: str) -> str:
        return f"type::thing({_literal(self.options.table)}, {_literal(key)})"

    async def _query(self, sql: str) -> List[Any]:
        resp = await self._request("POST", "/sql", content=sql)
        results = resp.json()
        for statement in results:
            if statement.get("status") != "OK":
                raise DriverError(f"SurrealDB statement failed: {statement.get('result')}")
        if not results:
            return []
        return results[-1].get("result") or []

    async def init(self) -> None:
        await self._open()
        await self._query(f"DEFINE TABLE IF NOT EXISTS {self.options.table} SCHEMALESS")

    async def get(self, key: str) -> Any:
        rows = await self._query(f"SELECT value FROM {self._thing(key)}")
        return rows[0].get("value") if rows else None

    async def set(self, key: str, value: Any) -> None:
        content = f"{{ key: {_literal(key)}, value: {_literal(value)} }}"
        await self._query(f"UPSERT {self._thing(key)} CONTENT {content}")

    async def remove(self, key: str) -> None:
        await self._query(f"DELETE {self._thing(key)}")

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        rows: List[Dict[str, Any]] = await self._query(f"SELECT key FROM {self.options.table}")
        return filter_keys([row["key"] for row in rows], key, not_key)
