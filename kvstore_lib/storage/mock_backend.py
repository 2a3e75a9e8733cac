"""Mock storage driver for tests.

Behaves like the memory driver but records every call in `calls` and lets
tests replace any operation with their own callable via `on()`. Handlers
may be plain functions or coroutine functions.
"""
import inspect
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .base import AbstractDatabase, BulkOperation, DriverSettings, filter_keys, parse_settings

OPERATIONS = ("init", "close", "get", "set", "remove", "find_keys", "do_bulk")


class MockSettings(DriverSettings):
    # Mirror the wrapper defaults of the memory driver unless asked otherwise.
    serialize: bool = False


class MockDatabase(AbstractDatabase):
    wrapper_defaults = {"cache": 0, "write_interval": 0}

    def __init__(self, settings: Any = None) -> None:
        super().__init__(settings)
        self.options = parse_settings(MockSettings, settings)
        self.wrapper_defaults = {**type(self).wrapper_defaults, "serialize": self.options.serialize}
        self.data: Dict[str, Any] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self._handlers: Dict[str, Callable[..., Any]] = {}

    def on(self, operation: str, handler: Optional[Callable[..., Any]]) -> None:
        """Replace `operation` with `handler`; None restores the default behavior."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation!r}")
        if handler is None:
            self._handlers.pop(operation, None)
        else:
            self._handlers[operation] = handler

    async def _dispatch(self, operation: str, *args: Any) -> Tuple[bool, Any]:
        self.calls.append((operation, *args))
        handler = self._handlers.get(operation)
        if handler is None:
            return False, None
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return True, result

    async def init(self) -> None:
        await self._dispatch("init")

    async def close(self) -> None:
        await self._dispatch("close")

    async def get(self, key: str) -> Any:
        handled, result = await self._dispatch("get", key)
        return result if handled else self.data.get(key)

    async def set(self, key: str, value: Any) -> None:
        handled, _ = await self._dispatch("set", key, value)
        if not handled:
            self.data[key] = value

    async def remove(self, key: str) -> None:
        handled, _ = await self._dispatch("remove", key)
        if not handled:
            self.data.pop(key, None)

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]:
        handled, result = await self._dispatch("find_keys", key, not_key)
        return list(result) if handled else filter_keys(list(self.data), key, not_key)

    async def do_bulk(self, operations: Sequence[BulkOperation]) -> None:
        handled, _ = await self._dispatch("do_bulk", list(operations))
        if not handled:
            await super().do_bulk(operations)
