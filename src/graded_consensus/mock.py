"""Scripted work unit and judge that deterministically trigger each outcome."""
from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from threading import Lock
from typing import Any

from .errors import JudgeError, WorkFailure

_ERROR_BY_MARKER: dict[str, str] = {
    "[FAIL]": "simulated backend failure",
    "[TIMEOUT]": "simulated timeout",
    "[MALFORMED]": "simulated malformed output",
}


class ScriptedWorkUnit:
    """Return scripted outputs in invocation order, cycling when exhausted.

    An output containing one of the ``[FAIL]``, ``[TIMEOUT]`` or
    ``[MALFORMED]`` markers raises :class:`WorkFailure` instead.
    """

    def __init__(self, outputs: Iterable[Any], *, delay_s: float = 0.0) -> None:
        self._outputs = list(outputs)
        if not self._outputs:
            raise ValueError("outputs must not be empty")
        self._delay_s = delay_s
        self._lock = Lock()
        self._cursor = 0
        self.calls: list[Any] = []

    def _next_output(self, params: Any) -> Any:
        with self._lock:
            output = self._outputs[self._cursor % len(self._outputs)]
            self._cursor += 1
            self.calls.append(params)
        return output

    async def produce(self, params: Any) -> Any:
        output = self._next_output(params)
        if self._delay_s > 0:
            await asyncio.sleep(self._delay_s)
        if isinstance(output, str):
            for marker, message in _ERROR_BY_MARKER.items():
                if marker in output:
                    raise WorkFailure(message)
        return output


def _verdicts(value: bool | Sequence[bool] | None) -> list[bool | None]:
    if value is None or isinstance(value, bool):
        return [value]
    return list(value)


class ScriptedJudge:
    """Judge replaying scripted verdicts; ``None`` simulates a judge failure."""

    def __init__(
        self,
        *,
        compare: bool | Sequence[bool] | None = True,
        assess: bool | Sequence[bool] | None = True,
    ) -> None:
        self._compare = _verdicts(compare)
        self._assess = _verdicts(assess)
        self._lock = Lock()
        self.compare_calls: list[tuple[list[Any], str]] = []
        self.assess_calls: list[tuple[Any, str, str]] = []

    @staticmethod
    def _pick(verdicts: list[bool | None], count: int) -> bool:
        verdict = verdicts[min(count, len(verdicts) - 1)]
        if verdict is None:
            raise JudgeError("simulated judge failure")
        return verdict

    def compare(self, values: Sequence[Any], principle: str) -> bool:
        with self._lock:
            count = len(self.compare_calls)
            self.compare_calls.append((list(values), principle))
        return self._pick(self._compare, count)

    def assess(self, value: Any, task: str, criteria: str) -> bool:
        with self._lock:
            count = len(self.assess_calls)
            self.assess_calls.append((value, task, criteria))
        return self._pick(self._assess, count)


__all__ = ["ScriptedWorkUnit", "ScriptedJudge"]
