"""Elasticsearch storage driver using the REST API over httpx.

Each record is a document whose id is the URL-quoted key, with the key
itself indexed as a `keyword` so wildcard queries can match it. Writes use
``refresh=wait_for`` so `find_keys` sees them immediately.
"""
from __future__ import annotations
import json
from typing import Any, List, Optional, Sequence
from urllib.parse import quote

from kvstore_lib.errors import DriverError

from .base import BulkOperation, create_find_regex, parse_settings
from .http_backend import HTTPDatabase, HTTPSettings

MAPPINGS = {
    "properties": {
        "key": {"type": "keyword"},
        "value": {"type": "text", "index": False},
    },
}


def _wildcard(key: str) -> str:
    return key.replace("\\", "\\\\").replace("?", "\\?")


class ElasticsearchSettings(HTTPSettings):
    url: str = "http://localhost:9200"
    index: str = "kvstore"
    max_results: int = 10000


class ElasticsearchDatabase(HTTPDatabase):
    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(ElasticsearchSettings, settings, "url")

    def _doc(self, key: str) -> str:
        return f"/{self.options.index}/_doc/{quote(key, safe='')}"

    async def init(self) -> None:
        await self._open()
        index = f"/{self.options.index}"
        resp = await self._request("HEAD", index, allow=(404,))
        if resp.status_code == 404:
            await self._request("PUT", index, json={"mappings": MAPPINGS}, allow=(400,))

    async def get(self, key: str) -> Any:
        resp = await self._request("GET", self._doc(key), allow=(404,))
        if resp.status_code == 404:
            return None
        return resp.json()["_source"]["value"]

    async def set(self, key: str, value: Any) -> None:
        await self._request(
            "PUT", self._doc(key), params={"refresh": "wait_for"}, json={"key": key, "value": value},
        )

    async def remove(self, key: str) -> None:
        await self._request("DELETE", self._doc(key), params={"refresh": "wait_for"}, allow=(404,))

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        query = {
            "query": {"wildcard": {"key": {"value": _wildcard(key)}}},
            "_source": ["key"],
            "size": self.options.max_results,
        }
        resp = await self._request("POST", f"/{self.options.index}/_search", json=query)
        keys = [hit["_source"]["key"] for hit in resp.json()["hits"]["hits"]]
        _, not_regex = create_find_regex(key, not_key)
        return [k for k in keys if not_regex is None or not not_regex.match(k)]

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        lines = []
        for op in operations:
            meta = {"_index": self.options.index, "_id": quote(op.key, safe="")}
            if op.type == "set":
                lines.append(json.dumps({"index": meta}))
                lines.append(json.dumps({"key": op.key, "value": op.value}))
            else:
                lines.append(json.dumps({"delete": meta}))
        resp = await self._request(
            "POST", "/_bulk", params={"refresh": "wait_for"},
            content="\n".join(lines) + "\n", headers={"Content-Type": "application/x-ndjson"},
        )
        body = resp.json()
        if body.get("errors"):
            failed = [
                item for entry in body.get("items", []) for item in entry.values()
                if item.get("status", 200) >= 400 and not (item.get("status") == 404 and "delete" in entry)
            ]
            if failed:
                raise DriverError(f"Bulk request failed for {len(failed)} records: {failed[0]}")
