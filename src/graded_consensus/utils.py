"""Utility helpers shared across the engine."""
from __future__ import annotations

import asyncio
from collections.abc import Callable
import contextvars
from importlib import import_module
import inspect
import logging
import threading
import time
from typing import Any

LOGGER = logging.getLogger(__name__)


def run_in_daemon_thread(func: Callable[..., Any], *args: Any) -> asyncio.Future[Any]:
    """Run ``func(*args)`` on a daemon thread and return a loop future for it.

    Unlike ``asyncio.to_thread`` the thread belongs to no executor, so a call
    abandoned after a timeout is never joined by ``asyncio.run``.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()
    context = contextvars.copy_context()

    def _resolve(result: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _deliver(result: Any, error: BaseException | None) -> None:
        try:
            loop.call_soon_threadsafe(_resolve, result, error)
        except RuntimeError:
            LOGGER.debug("event loop closed before %r finished", func)

    def _worker() -> None:
        try:
            result = context.run(func, *args)
        except BaseException as exc:
            _deliver(None, exc)
            return
        _deliver(result, None)

    name = getattr(func, "__name__", type(func).__name__)
    threading.Thread(target=_worker, name=f"graded-consensus-{name}", daemon=True).start()
    return future


async def call_with_timeout(
    func: Callable[..., Any], *args: Any, timeout_s: float | None = None
) -> Any:
    """Invoke a sync or async callable, bounded by ``timeout_s`` seconds.

    Plain callables run in a daemon thread so the timeout still applies to
    blocking backends and an abandoned call never delays loop shutdown.
    Raises :class:`asyncio.TimeoutError` on expiry.
    """

    if inspect.iscoroutinefunction(func):
        awaitable = func(*args)
    else:
        awaitable = run_in_daemon_thread(func, *args)
    result = await asyncio.wait_for(awaitable, timeout=timeout_s)
    if inspect.isawaitable(result):
        result = await asyncio.wait_for(result, timeout=timeout_s)
    return result


def elapsed_ms(start_ts: float, *, now: float | None = None) -> int:
    """Return elapsed time in milliseconds since ``start_ts``."""

    current = time.monotonic() if now is None else now
    return max(0, int((current - start_ts) * 1000))


def load_object(path: str) -> Any:
    """Resolve ``"package.module:attribute"`` to the referenced object."""

    module_name, sep, attribute = path.partition(":")
    module_name = module_name.strip()
    attribute = attribute.strip()
    if not sep or not module_name or not attribute:
        raise ValueError(f"invalid object path: {path!r} (expected module:attribute)")
    target: Any = import_module(module_name)
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ValueError(f"{module_name!r} has no attribute {attribute!r}") from exc
    return target


__all__ = ["call_with_timeout", "run_in_daemon_thread", "elapsed_ms", "load_object"]
