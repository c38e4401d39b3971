"""Replica runner executing a work unit on independent replicas."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Any

from .errors import RunFailure, WorkFailure
from .models import CandidateResult, ReplicaFailure
from .utils import call_with_timeout, elapsed_ms
from .work import WorkUnit

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReplicaBatch:
    """Candidates and failures collected for one policy attempt."""

    candidates: tuple[CandidateResult, ...]
    failures: tuple[ReplicaFailure, ...]
    replicas_run: int

    @property
    def succeeded(self) -> int:
        return len(self.candidates)


def _normalize_concurrency(total: int, limit: int | None) -> int:
    if limit is None or limit <= 0:
        return max(total, 1)
    return max(min(limit, total), 1)


class ReplicaRunner:
    """Run ``replicas`` independent invocations of a work unit.

    Replicas run concurrently, at most ``max_concurrency`` at a time, each
    bounded by ``timeout_s``. ``WorkFailure`` and timeouts only exclude the
    failing replica; :class:`RunFailure` is raised as soon as fewer than
    ``min_successes`` replicas can still succeed.
    """

    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._timeout_s = timeout_s
        self._max_concurrency = max_concurrency

    @property
    def timeout_s(self) -> float | None:
        return self._timeout_s

    async def run(
        self,
        work_unit: WorkUnit,
        params: Any,
        replicas: int,
        *,
        min_successes: int | None = None,
    ) -> ReplicaBatch:
        if replicas < 1:
            raise ValueError("replicas must be at least 1")
        required = replicas if min_successes is None else min_successes
        if not 1 <= required <= replicas:
            raise ValueError("min_successes must be between 1 and replicas")
        allowed_failures = replicas - required

        semaphore = asyncio.Semaphore(_normalize_concurrency(replicas, self._max_concurrency))
        candidates: list[CandidateResult] = []
        failures: list[ReplicaFailure] = []
        started = 0

        async def _run_replica(index: int) -> None:
            nonlocal started
            async with semaphore:
                if len(failures) > allowed_failures:
                    return
                started += 1
                start = time.monotonic()
                try:
                    value = await call_with_timeout(
                        work_unit.produce, params, timeout_s=self._timeout_s
                    )
                except asyncio.TimeoutError:
                    failures.append(
                        ReplicaFailure(
                            replica_index=index,
                            error_type=WorkFailure.__name__,
                            message=f"timed out after {self._timeout_s}s",
                            latency_ms=elapsed_ms(start),
                        )
                    )
                    return
                except WorkFailure as exc:
                    failures.append(
                        ReplicaFailure.from_exception(index, exc, latency_ms=elapsed_ms(start))
                    )
                    return
                candidates.append(
                    CandidateResult(
                        replica_index=index,
                        value=value,
                        produced_at=time.time(),
                        latency_ms=elapsed_ms(start),
                    )
                )

        pending = {asyncio.create_task(_run_replica(index)) for index in range(replicas)}
        try:
            while pending and len(failures) <= allowed_failures:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    task.result()
        finally:
            # Abandon the rest without waiting; cancellation must not block.
            for task in pending:
                task.cancel()

        ordered_failures = tuple(sorted(failures, key=lambda failure: failure.replica_index))
        for failure in ordered_failures:
            LOGGER.debug("replica failed: %s", failure.summary())
        if len(failures) > allowed_failures:
            raise RunFailure(
                f"{len(candidates)} of {replicas} replicas succeeded, {required} required",
                failures=ordered_failures,
                succeeded=len(candidates),
                required=required,
                replicas_run=started,
            )
        return ReplicaBatch(
            candidates=tuple(sorted(candidates, key=lambda candidate: candidate.replica_index)),
            failures=ordered_failures,
            replicas_run=started,
        )


__all__ = ["ReplicaBatch", "ReplicaRunner"]
