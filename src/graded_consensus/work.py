"""Work unit interface executed once per replica."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
import inspect
from typing import Any, Protocol, runtime_checkable

from .errors import WorkFailure


@runtime_checkable
class WorkUnit(Protocol):
    """Produces one candidate value from ``params``.

    Implementations may be non-deterministic and may be coroutine functions.
    Expected backend problems must surface as :class:`WorkFailure`; anything
    else is treated as a programming error and aborts the operation.
    """

    def produce(self, params: Any) -> Any | Awaitable[Any]:
        ...


class CallableWorkUnit:
    """Adapt a plain (sync or async) callable into a :class:`WorkUnit`."""

    def __init__(
        self,
        func: Callable[[Any], Any],
        *,
        failure_types: tuple[type[BaseException], ...] = (),
        name: str | None = None,
    ) -> None:
        if not callable(func):
            raise TypeError("func must be callable")
        self._func = func
        self._failure_types = failure_types
        self._name = name or getattr(func, "__name__", type(func).__name__)

    def name(self) -> str:
        return self._name

    def _wrap(self, exc: BaseException) -> WorkFailure:
        return WorkFailure(f"{self._name}: {type(exc).__name__}: {exc}")

    def produce(self, params: Any) -> Any:
        if inspect.iscoroutinefunction(self._func):
            return self._produce_async(params)
        try:
            return self._func(params)
        except WorkFailure:
            raise
        except self._failure_types as exc:
            raise self._wrap(exc) from exc

    async def _produce_async(self, params: Any) -> Any:
        try:
            return await self._func(params)
        except WorkFailure:
            raise
        except self._failure_types as exc:
            raise self._wrap(exc) from exc


__all__ = ["WorkUnit", "CallableWorkUnit"]
