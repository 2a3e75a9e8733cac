"""Completion-callback adapters for the coroutine based `Database` API.

Older callers pass a completion function instead of awaiting a result.
`callbackify` runs a coroutine function as a task and reports its outcome
to such a function as ``callback(err, result)``. `make_done_callback`
builds the combined completion function used by the write operations that
historically accepted two callbacks.
"""
from __future__ import annotations
import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, Set

from kvstore_lib.errors import UnhandledWriteError

Callback = Callable[..., Any]

# Strong references to in-flight tasks; the event loop only keeps weak ones.
_pending: Set[asyncio.Task] = set()


def callbackify(fn: Callable[..., Awaitable[Any]]) -> Callable[..., asyncio.Task]:
    """Adapt coroutine function `fn` to the completion-callback convention.

    The returned function takes `fn`'s arguments followed by `callback`. It
    must be called from inside a running event loop; it schedules `fn` as a
    task and returns the task. On completion `callback(err, result)` is
    called with `err` set to None on success and `result` set to None on
    failure. The outcome is never altered, only delivered differently.
    Exceptions raised by `callback` itself surface through the loop's
    exception handler.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, callback: Callback) -> asyncio.Task:
        coro = fn(*args)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise RuntimeError(f"{fn.__name__}() with a callback requires a running event loop")
        task = loop.create_task(coro)
        _pending.add(task)

        def _done(t: asyncio.Task) -> None:
            _pending.discard(t)
            if t.cancelled():
                callback(asyncio.CancelledError(), None)
                return
            err = t.exception()
            if err is not None:
                callback(err, None)
            else:
                callback(None, t.result())

        task.add_done_callback(_done)
        return task

    return wrapper


def make_done_callback(callback: Optional[Callback], deprecated: Optional[Callback]) -> Callback:
    """Combine the two legacy write callbacks into one completion function.

    The result is called as ``done(err, result=None)``. It calls `callback`
    first and `deprecated` second, each with `err`, one after the other.
    If `err` is set and neither callback was supplied the error is raised
    as `UnhandledWriteError` so a failed write can never go unnoticed.
    """

    def done(err: Optional[BaseException], result: Any = None) -> None:
        if callback is not None:
            callback(err)
        if deprecated is not None:
            deprecated(err)
        if err is not None and callback is None and deprecated is None:
            raise UnhandledWriteError(err) from err

    return done
