"""CouchDB storage driver using the HTTP API over httpx.

Each record is a document whose `_id` is the key. Updates need the current
revision, so `set` and `remove` read it first.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from .base import BulkOperation, create_find_regex, parse_settings
from .http_backend import HTTPDatabase, HTTPSettings


class CouchSettings(HTTPSettings):
    url: str = "http://localhost:5984"
    database: str = "kvstore"
    max_results: int = 100000


class CouchDatabase(HTTPDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(CouchSettings, settings, "url")

    def _doc(self, key: str) -> str:
        return f"/{self.options.database}/{quote(key, safe='')}"

    async def init(self) -> None:
        await self._open()
        # 412: database already exists.
        await self._request("PUT", f"/{self.options.database}", allow=(412,))

    async def _fetch(self, key: str) -> Optional[Dict[str, Any]]:
        resp = await self._request("GET", self._doc(key), allow=(404,))
        return None if resp.status_code == 404 else resp.json()

    async def get(self, key: str) -> Any:
        doc = await self._fetch(key)
        return doc.get("value") if doc else None

    async def set(self, key: str, value: Any) -> None:
        doc = await self._fetch(key)
        body: Dict[str, Any] = {"value": value}
        if doc:
            body["_rev"] = doc["_rev"]
        await self._request("PUT", self._doc(key), json=body)

    async def remove(self, key: str) -> None:
        doc = await self._fetch(key)
        if doc:
            await self._request("DELETE", self._doc(key), params={"rev": doc["_rev"]}, allow=(404,))

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        regex, not_regex = create_find_regex(key, not_key)
        selector: Dict[str, Any] = {"$regex": regex.pattern}
        if not_regex is not None:
            selector["$not"] = {"$regex": not_regex.pattern}
        resp = await self._request(
            "POST", f"/{self.options.database}/_find",
            json={"selector": {"_id": selector}, "fields": ["_id"], "limit": self.options.max_results},
        )
        return [doc["_id"] for doc in resp.json()["docs"]]

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        keys = list(dict.fromkeys(op.key for op in operations))
        resp = await self._request(
            "POST", f"/{self.options.database}/_all_docs", json={"keys": keys},
        )
        revs = {
            row["key"]: row["value"]["rev"]
            for row in resp.json()["rows"]
            if "value" in row and not row["value"].get("deleted")
        }
        docs = []
        for op in operations:
            doc: Dict[str, Any] = {"_id": op.key}
            if op.key in revs:
                doc["_rev"] = revs[op.key]
            if op.type == "set":
                doc["value"] = op.value
            elif op.key in revs:
                doc["_deleted"] = True
            else:
                continue
            docs.append(doc)
        if docs:
            await self._request("POST", f"/{self.options.database}/_bulk_docs", json={"docs": docs})
