"""Redis storage driver built on `redis.asyncio`.

Keys are stored as plain string keys; `find_keys` walks the keyspace with
``SCAN MATCH`` so it never blocks the server the way ``KEYS`` would.
"""
from __future__ import annotations
import re
from typing import Any, List, Optional, Sequence

from .base import AbstractDatabase, BulkOperation, DriverSettings, create_find_regex, parse_settings

_GLOB_SPECIAL = re.compile(r"([?\[\]\\])")


def glob_pattern(key: str) -> str:
    """Escape Redis glob metacharacters except the `*` wildcard."""
    return _GLOB_SPECIAL.sub(r"\\\1", key)


class RedisSettings(DriverSettings):
    url: Optional[str] = None
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    scan_count: int = 1000


class RedisDatabase(AbstractDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(RedisSettings, settings, "url")
        self._client = None

    async def init(self) -> None:
        from redis import asyncio as aioredis

        opts = self.options
        extra = opts.model_extra or {}
        if opts.url:
            self._client = aioredis.Redis.from_url(opts.url, decode_responses=True, **extra)
        else:
            self._client = aioredis.Redis(
                host=opts.host, port=opts.port, db=opts.db, password=opts.password,
                decode_responses=True, **extra,
            )
        await self._client.ping()

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def get(self, key: str) -> Any:
        return await self._client.get(key)

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(key, value)

    async def remove(self, key: str) -> None:
        await self._client.delete(key)

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        _, not_regex = create_find_regex(key, not_key)
        keys = []
        async for found in self._client.scan_iter(match=glob_pattern(key), count=self.options.scan_count):
            if not_regex is None or not not_regex.match(found):
                keys.append(found)
        # SCAN may return a key more than once.
        return list(dict.fromkeys(keys))

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        async with self._client.pipeline(transaction=False) as pipe:
            for op in operations:
                if op.type == "set":
                    pipe.set(op.key, op.value)
                else:
                    pipe.delete(op.key)
            await pipe.execute()
