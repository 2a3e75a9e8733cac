from typing import Protocol, Any, List, Optional, Sequence, runtime_checkable


@runtime_checkable
class DriverProtocol(Protocol):
    """Storage driver protocol mirroring `kvstore_lib.storage.base.AbstractDatabase`.

    Implementations should follow the semantics documented on the abstract
    base class (None for missing keys, `*` wildcards in `find_keys`, etc.).
    """

    async def init(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]: ...


@runtime_checkable
class CacheLayerProtocol(Protocol):
    """Operation set the `Database` facade forwards to."""

    metrics: Any

    async def init(self) -> None: ...

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def find_keys(self, key: str, not_key: Optional[str] = None) -> List[str]: ...

    async def get_sub(self, key: str, sub: str | Sequence[str]) -> Any: ...

    async def set_sub(self, key: str, sub: str | Sequence[str], value: Any) -> None: ...

    async def flush(self) -> None: ...

    async def stop(self) -> None: ...

    async def close(self) -> None: ...
