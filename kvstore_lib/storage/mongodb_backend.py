"""MongoDB storage driver built on pymongo's `AsyncMongoClient`.

Each record is a document ``{"_id": key, "value": value}``.
"""
from __future__ import annotations
from typing import Any, List, Optional, Sequence

from .base import BulkOperation, DriverSettings, AbstractDatabase, create_find_regex, parse_settings


class MongoSettings(DriverSettings):
    url: str = "mongodb://localhost:27017"
    database: str = "kvstore"
    collection: str = "store"


class MongoDatabase(AbstractDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(MongoSettings, settings, "url")
        self._client = None
        self._collection = None

    async def init(self) -> None:
        from pymongo import AsyncMongoClient

        self._client = AsyncMongoClient(self.options.url, **(self.options.model_extra or {}))
        self._collection = self._client[self.options.database][self.options.collection]
        # Fail fast on bad credentials or unreachable servers.
        await self._client.admin.command("ping")

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    async def get(self, key: str) -> Any:
        doc = await self._collection.find_one({"_id": key})
        return doc["value"] if doc else None

    async def set(self, key: str, value: Any) -> None:
        await self._collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)

    async def remove(self, key: str) -> None:
        await self._collection.delete_one({"_id": key})

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        regex, not_regex = create_find_regex(key, not_key)
        query: dict = {"$regex": regex.pattern, "$options": "s"}
        if not_regex is not None:
            query["$not"] = not_regex
        return [doc["_id"] async for doc in self._collection.find({"_id": query}, {"_id": 1})]

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        from pymongo import DeleteOne, ReplaceOne

        requests = [
            ReplaceOne({"_id": op.key}, {"_id": op.key, "value": op.value}, upsert=True)
            if op.type == "set" else DeleteOne({"_id": op.key})
            for op in operations
        ]
        if requests:
            await self._collection.bulk_write(requests, ordered=True)
