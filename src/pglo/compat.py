"""Callback-style access to the coroutine API."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

_logger = structlog.get_logger("pglo.compat")


def callbackify(func: Callable[..., Awaitable[Any]]) -> Callable[..., asyncio.Task[Any]]:
    """
    Turn a coroutine function into one taking a trailing ``callback``.

    The callback is invoked as ``callback(error, *results)`` once the
    coroutine settles: ``error`` is ``None`` on success and tuple results
    are spread, so ``callbackify(manager.open_and_readable_stream)`` calls
    back with ``(None, size, stream)``.  Must be called with a running event
    loop; the scheduled task is returned.

    An exception raised by the callback itself is logged as
    ``callback_error`` and re-raised from the returned task.

    Example::

        read = callbackify(obj.read)
        read(16, lambda err, data: print(err or data))
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> asyncio.Task[Any]:
        if not args or not callable(args[-1]):
            raise TypeError(f"{func.__name__}() requires a trailing callback argument")
        *call_args, callback = args

        async def _run() -> Any:
            try:
                result = await func(*call_args, **kwargs)
            except Exception as exc:
                _deliver(callback, exc)
                return None
            if isinstance(result, tuple):
                _deliver(callback, None, *result)
            elif result is None:
                _deliver(callback, None)
            else:
                _deliver(callback, None, result)
            return result

        return asyncio.get_running_loop().create_task(_run())

    return wrapper


def _deliver(callback: Callable[..., Any], *args: Any) -> None:
    try:
        callback(*args)
    except Exception as exc:
        _logger.error(
            "callback_error",
            callback=getattr(callback, "__qualname__", repr(callback)),
            error=str(exc),
        )
        raise
