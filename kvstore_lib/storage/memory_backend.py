"""Simple memory-backed storage driver.

Values are kept as Python objects in a plain dict. The dict can be supplied
through the `data` setting so callers can inspect what was written.
"""
from typing import Any, Dict, List, Optional, MutableMapping

from .base import AbstractDatabase, DriverSettings, filter_keys, parse_settings


class MemorySettings(DriverSettings):
    data: Optional[Dict[str, Any]] = None


class MemoryDatabase(AbstractDatabase):
    # Values are never serialized, cached twice or buffered.
    wrapper_defaults = {"serialize": False, "cache": 0, "write_interval": 0}

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        parse_settings(MemorySettings, settings)
        # The model copies mappings; keep the caller's own dict so writes are visible to them.
        data = settings.get("data") if isinstance(settings, dict) else None
        self._data: MutableMapping[str, Any] = data if data is not None else {}

    @property
    def data(self) -> MutableMapping[str, Any]:
        return self._data

    async def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        return filter_keys(list(self._data), key, not_key)

    async def close(self) -> None:
        self._data = {}
