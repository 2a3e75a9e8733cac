"""Shared plumbing for drivers that talk to their engine over HTTP (httpx)."""
from __future__ import annotations
from typing import Any, Iterable, Optional

import httpx

from kvstore_lib.errors import DriverError

from .base import AbstractDatabase, DriverSettings


class HTTPSettings(DriverSettings):
    url: str = "http://localhost"
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0


class HTTPDatabase(AbstractDatabase):
    options: HTTPSettings

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self._client: Optional[httpx.AsyncClient] = None

    def _client_kwargs(self) -> dict:
        return {}

    async def _open(self) -> None:
        opts = self.options
        auth = None
        if opts.username is not None:
            auth = httpx.BasicAuth(opts.username, opts.password or "")
        self._client = httpx.AsyncClient(
            base_url=opts.url.rstrip("/"), auth=auth, timeout=opts.timeout, **self._client_kwargs(),
        )

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def _request(self, method: str, url: str, *, allow: Iterable[int] = (), **kwargs: Any) -> httpx.Response:
        """Send a request; error statuses not listed in `allow` raise DriverError."""
        assert self._client is not None, "HTTP client is not open"
        resp = await self._client.request(method, url, **kwargs)
        if resp.status_code >= 400 and resp.status_code not in allow:
            raise DriverError(f"{method} {url} failed with HTTP {resp.status_code}: {resp.text}")
        return resp
