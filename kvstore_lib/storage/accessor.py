from typing import Any, MutableMapping, Mapping, Sequence, Tuple, Union

SubPath = Union[str, Sequence[str]]


def normalize_path(sub: SubPath) -> Tuple[str, ...]:
    """Return `sub` as a tuple of path elements. A plain string is a single element."""
    if isinstance(sub, str):
        return (sub,)
    path = tuple(sub)
    if not all(isinstance(p, str) for p in path):
        raise TypeError(f"Sub-key path elements must be strings: {path!r}")
    return path


class DictAccessor:
    """Accessor for nested dict-like values addressed by a sequence of keys.

    Reads along a missing path yield None. Writes create missing
    intermediate mappings but refuse to overwrite a non-mapping value that
    sits in the middle of the path.
    """

    def get(self, value: Any, path: Sequence[str]) -> Any:
        cur = value
        for p in path:
            if not isinstance(cur, Mapping) or p not in cur:
                return None
            cur = cur[p]
        return cur

    def set(self, value: Any, path: Sequence[str], new: Any) -> Any:
        """Assign `new` at `path` inside `value` and return the (possibly new) root."""
        if not path:
            return new
        root = {} if value is None else value
        cur = root
        for depth, p in enumerate(path[:-1]):
            if not isinstance(cur, MutableMapping):
                raise TypeError(f"Cannot set property {p!r} on non-object at {list(path[:depth])!r}")
            if cur.get(p) is None:
                cur[p] = {}
            cur = cur[p]
        if not isinstance(cur, MutableMapping):
            raise TypeError(f"Cannot set property {path[-1]!r} on non-object at {list(path[:-1])!r}")
        cur[path[-1]] = new
        return root
