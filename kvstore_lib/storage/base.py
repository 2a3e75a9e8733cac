"""Storage driver interface definitions.

Defines the AbstractDatabase class every storage driver derives from. A
driver only has to persist string keys mapped to values; caching, write
buffering, sub-value navigation and serialization are handled by
`kvstore_lib.storage.cache_layer.CacheAndBufferLayer` which wraps it.
"""
from __future__ import annotations
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict

S = TypeVar("S", bound=BaseModel)


class DriverSettings(BaseModel):
    """Base model for driver specific settings.

    Unknown options are kept so callers can pass engine options through
    without the model having to list each of them.
    """

    model_config = ConfigDict(extra="allow")


def parse_settings(model: Type[S], settings: Any, string_field: Optional[str] = None) -> S:
    """Validate opaque driver settings against `model`.

    `None` yields the model defaults. A plain string is accepted when the
    engine has a single connection string (or filename) and is assigned to
    `string_field`.
    """
    if settings is None:
        return model()
    if isinstance(settings, model):
        return settings
    if isinstance(settings, str):
        if string_field is None:
            raise TypeError(f"{model.__name__} does not accept a string setting")
        return model.model_validate({string_field: settings})
    if isinstance(settings, BaseModel):
        settings = settings.model_dump()
    return model.model_validate(dict(settings))


@dataclass
class BulkOperation:
    """One buffered write handed to `AbstractDatabase.do_bulk`.

    `type` is either ``"set"`` or ``"remove"``; `value` is ignored for removals.
    """

    type: str
    key: str
    value: Any = None


def _wildcard_to_regex(pattern: str) -> str:
    return "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"


def create_find_regex(key: str, not_key: Optional[str] = None) -> tuple[re.Pattern, Optional[re.Pattern]]:
    """Compile `*` wildcard patterns into anchored regular expressions."""
    regex = re.compile(_wildcard_to_regex(key), re.DOTALL)
    not_regex = re.compile(_wildcard_to_regex(not_key), re.DOTALL) if not_key is not None else None
    return regex, not_regex


def filter_keys(keys: Sequence[str], key: str, not_key: Optional[str] = None) -> List[str]:
    """Return the keys matching `key` and not matching `not_key`."""
    regex, not_regex = create_find_regex(key, not_key)
    return [k for k in keys if regex.match(k) and not (not_regex and not_regex.match(k))]


LIKE_ESCAPE = "!"


def like_pattern(key: str) -> str:
    """Translate a `*` wildcard pattern into a SQL LIKE pattern using `!` as escape."""
    escaped = (
        key.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return escaped.replace("*", "%")


class AbstractDatabase(ABC):
    """Abstract storage driver.

    Values handed to a driver are strings when the cache layer serializes
    them (the default) or arbitrary Python objects when the driver opts out
    via `wrapper_defaults = {"serialize": False}`. `get` must return `None` for
    missing keys rather than raising.
    """

    #: Settings merged into the cache layer configuration before the
    #: caller's own wrapper settings.
    wrapper_defaults: ClassVar[Dict[str, Any]] = {}

    def __init__(self, settings: Any = None) -> None:
        self.settings = settings
        self.logger: logging.Logger = logging.getLogger(type(self).__module__)

    async def init(self) -> None:
        """Open connections and create the backing table/collection if needed."""

    async def close(self) -> None:
        """Release any resources held by the driver."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value for `key`, or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete `key`. Missing keys are not an error."""

    @abstractmethod
    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        """Return keys matching the `*` wildcard pattern `key`, excluding `not_key` matches."""

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        """Apply a batch of writes. Drivers override this when the engine
        has a native batch primitive."""
        for op in operations:
            if op.type == "set":
                await self.set(op.key, op.value)
            elif op.type == "remove":
                await self.remove(op.key)
            else:
                raise ValueError(f"Unknown bulk operation type: {op.type!r}")
