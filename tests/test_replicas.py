from __future__ import annotations

import asyncio
from typing import Any

import pytest

from graded_consensus.errors import RecoverableError, RunFailure, WorkFailure
from graded_consensus.mock import ScriptedWorkUnit
from graded_consensus.replicas import ReplicaRunner
from graded_consensus.work import CallableWorkUnit


class _SlowFirstWork:
    def __init__(self) -> None:
        self.calls = 0

    async def produce(self, params: Any) -> str:
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(5)
        return "ok"


class _BrokenWork:
    async def produce(self, params: Any) -> str:
        raise RuntimeError("bug in work unit")


@pytest.mark.asyncio
async def test_runner_collects_candidates_in_replica_order() -> None:
    work = ScriptedWorkUnit(["a", "b", "c"])

    batch = await ReplicaRunner().run(work, {"q": 1}, 3)

    assert [candidate.value for candidate in batch.candidates] == ["a", "b", "c"]
    assert [candidate.replica_index for candidate in batch.candidates] == [0, 1, 2]
    assert batch.failures == ()
    assert batch.replicas_run == 3
    assert batch.succeeded == 3
    assert work.calls == [{"q": 1}] * 3


@pytest.mark.asyncio
async def test_timeout_excludes_only_the_slow_replica() -> None:
    work = _SlowFirstWork()

    batch = await ReplicaRunner(timeout_s=0.05).run(work, None, 2, min_successes=1)

    assert [candidate.replica_index for candidate in batch.candidates] == [1]
    assert len(batch.failures) == 1
    failure = batch.failures[0]
    assert failure.replica_index == 0
    assert failure.error_type == "WorkFailure"
    assert failure.message == "timed out after 0.05s"


@pytest.mark.asyncio
async def test_work_failure_is_recorded_per_replica() -> None:
    work = ScriptedWorkUnit(["x", "[FAIL]", "x"])

    batch = await ReplicaRunner(max_concurrency=1).run(work, None, 3, min_successes=2)

    assert [candidate.replica_index for candidate in batch.candidates] == [0, 2]
    assert [failure.summary() for failure in batch.failures] == [
        "replica 1: WorkFailure: simulated backend failure"
    ]


@pytest.mark.asyncio
async def test_run_failure_when_too_few_replicas_can_succeed() -> None:
    work = ScriptedWorkUnit(["[FAIL]", "x", "x"])

    with pytest.raises(RunFailure) as excinfo:
        await ReplicaRunner(max_concurrency=1).run(work, None, 3)

    error = excinfo.value
    assert str(error) == "0 of 3 replicas succeeded, 3 required"
    assert error.required == 3
    assert error.succeeded == 0
    assert error.replicas_run == 1
    assert len(work.calls) == 1
    assert error.failures[0].message == "simulated backend failure"


@pytest.mark.asyncio
async def test_unexpected_exceptions_propagate() -> None:
    with pytest.raises(RuntimeError, match="bug in work unit"):
        await ReplicaRunner().run(_BrokenWork(), None, 2)


@pytest.mark.asyncio
async def test_sync_callables_run_off_the_event_loop() -> None:
    def _produce(params: Any) -> str:
        if params == "bad":
            raise ValueError("bad params")
        return f"echo:{params}"

    work = CallableWorkUnit(_produce, failure_types=(ValueError,))

    batch = await ReplicaRunner().run(work, "hi", 2)
    assert [candidate.value for candidate in batch.candidates] == ["echo:hi", "echo:hi"]

    with pytest.raises(RunFailure) as excinfo:
        await ReplicaRunner().run(work, "bad", 1)
    assert excinfo.value.failures[0].message == "_produce: ValueError: bad params"


@pytest.mark.parametrize(
    ("replicas", "min_successes"),
    [(0, None), (2, 0), (2, 3)],
)
@pytest.mark.asyncio
async def test_invalid_replica_arguments(replicas: int, min_successes: int | None) -> None:
    with pytest.raises(ValueError):
        await ReplicaRunner().run(ScriptedWorkUnit(["x"]), None, replicas, min_successes=min_successes)


def test_runner_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        ReplicaRunner(timeout_s=0)


def test_work_failure_is_recoverable() -> None:
    assert issubclass(WorkFailure, RecoverableError)
