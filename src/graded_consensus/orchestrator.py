"""Fallback orchestrator walking the policy ladder for one operation."""
from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
import logging
from typing import Any

from .config import EngineConfig
from .errors import AllPoliciesExhausted, ConfigError, FatalError, OperationConflict, RunFailure
from .judge import EquivalenceJudge
from .ledger import ResultLedger
from .models import (
    LedgerEntry,
    OperationRequest,
    OperationState,
    PolicyAttempt,
    PolicyLevel,
)
from .observability import EventLogger, resolve_event_logger
from .policies import AgreementPolicy
from .replicas import ReplicaBatch, ReplicaRunner
from .work import WorkUnit

LOGGER = logging.getLogger(__name__)


class FallbackOrchestrator:
    """Run an operation through increasingly lenient agreement policies.

    States move ``pending -> evaluating(policy_i) -> accepted | exhausted``.
    Policy attempts are strictly sequential; replicas inside one attempt
    run concurrently through :class:`ReplicaRunner`. Callers observe one of
    three outcomes: the accepted :class:`LedgerEntry`,
    :class:`AllPoliciesExhausted` or :class:`OperationConflict`.
    """

    def __init__(
        self,
        work_unit: WorkUnit,
        *,
        judge: EquivalenceJudge | None = None,
        ledger: ResultLedger | None = None,
        config: EngineConfig | None = None,
        event_logger: EventLogger | None = None,
        runner: ReplicaRunner | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._work_unit = work_unit
        self._judge = judge
        self._ledger = ledger if ledger is not None else ResultLedger(self._config.ledger_path)
        self._runner = runner or ReplicaRunner(
            timeout_s=self._config.replica_timeout_s,
            max_concurrency=self._config.max_concurrency,
        )
        self._event_logger = resolve_event_logger(event_logger, self._config.metrics_path)

    @property
    def ledger(self) -> ResultLedger:
        return self._ledger

    @property
    def config(self) -> EngineConfig:
        return self._config

    async def submit(self, request: OperationRequest) -> LedgerEntry:
        """Execute ``request`` and return its accepted ledger entry."""

        operation_id = request.operation_id
        try:
            self._ledger.claim(operation_id)
        except OperationConflict:
            LOGGER.warning("operation %s rejected: id already used", operation_id)
            self._emit("operation_conflict", operation_id)
            raise

        try:
            self._check_judge(request)
            entry = await self._execute(request)
        except asyncio.CancelledError:
            if operation_id not in self._ledger:
                self._ledger.release(operation_id)
                self._emit(
                    "operation_cancelled", operation_id, state=OperationState.CANCELLED.value
                )
            raise
        except BaseException:
            self._ledger.release(operation_id)
            raise

        if not entry.accepted:
            raise AllPoliciesExhausted(entry)
        return entry

    def submit_sync(self, request: OperationRequest) -> LedgerEntry:
        """Blocking variant of :meth:`submit` for code without an event loop."""

        return asyncio.run(self.submit(request))

    async def submit_many(
        self, requests: Sequence[OperationRequest]
    ) -> list[LedgerEntry | FatalError]:
        """Submit independent operations concurrently.

        Terminal failures are returned in place of entries; anything else
        propagates.
        """

        results = await asyncio.gather(
            *(self.submit(request) for request in requests), return_exceptions=True
        )
        collected: list[LedgerEntry | FatalError] = []
        for result in results:
            if isinstance(result, LedgerEntry | FatalError):
                collected.append(result)
            else:
                raise result
        return collected

    def _check_judge(self, request: OperationRequest) -> None:
        if self._judge is not None:
            return
        needs_judge = [
            policy.level.value
            for policy in request.policies
            if policy.level is not PolicyLevel.STRICT
        ]
        if needs_judge:
            raise ConfigError(
                f"policies {', '.join(needs_judge)} require an equivalence judge"
            )

    async def _execute(self, request: OperationRequest) -> LedgerEntry:
        operation_id = request.operation_id
        self._warn_trivial_agreement(request)
        history: list[PolicyAttempt] = []
        replicas_run = 0

        for position, policy in enumerate(request.policies):
            replicas = policy.replicas_needed(request.replica_count)
            required = policy.min_successes(replicas)
            LOGGER.debug(
                "operation %s evaluating %s with %d replica(s)",
                operation_id,
                policy.level.value,
                replicas,
            )
            try:
                batch = await self._runner.run(
                    self._work_unit, request.params, replicas, min_successes=required
                )
            except RunFailure as exc:
                replicas_run += exc.replicas_run
                attempt = PolicyAttempt(
                    policy=policy.level,
                    reason="run_failure",
                    detail=str(exc),
                    replicas_run=exc.replicas_run,
                    replicas_succeeded=exc.succeeded,
                    failures=tuple(exc.failures),
                )
                self._record_rejection(request, position, attempt)
                history.append(attempt)
                continue

            replicas_run += batch.replicas_run
            self._emit_replica_failures(operation_id, policy, batch)
            outcome = await policy.evaluate(
                batch.candidates,
                judge=self._judge,
                timeout_s=self._config.judge_timeout_s,
            )
            if outcome.accepted:
                entry = LedgerEntry(
                    operation_id=operation_id,
                    status=OperationState.ACCEPTED,
                    value=outcome.value,
                    policy=policy.level,
                    replicas_run=replicas_run,
                    history=tuple(history),
                )
                entry = await self._record(entry)
                self._emit(
                    "operation_accepted",
                    operation_id,
                    state=OperationState.ACCEPTED.value,
                    policy=policy.level.value,
                    attempts=position + 1,
                    replicas_run=replicas_run,
                    detail=outcome.detail,
                )
                LOGGER.info(
                    "operation %s accepted at %s", operation_id, policy.level.value
                )
                return entry

            attempt = PolicyAttempt(
                policy=policy.level,
                reason="rejected",
                detail=outcome.detail,
                replicas_run=batch.replicas_run,
                replicas_succeeded=batch.succeeded,
                failures=batch.failures,
            )
            self._record_rejection(request, position, attempt)
            history.append(attempt)

        entry = LedgerEntry(
            operation_id=operation_id,
            status=OperationState.EXHAUSTED,
            value=None,
            policy=None,
            replicas_run=replicas_run,
            history=tuple(history),
        )
        entry = await self._record(entry)
        self._emit(
            "operation_exhausted",
            operation_id,
            state=OperationState.EXHAUSTED.value,
            attempts=len(history),
            replicas_run=replicas_run,
            history=[attempt.to_record() for attempt in history],
        )
        LOGGER.warning(
            "operation %s exhausted %d polic%s",
            operation_id,
            len(history),
            "y" if len(history) == 1 else "ies",
        )
        return entry

    async def _record(self, entry: LedgerEntry) -> LedgerEntry:
        """Write ``entry``; persisted appends run off the event loop.

        A cancellation arriving mid-write waits for the append to finish, so
        the ledger never holds an entry the caller was told was cancelled.
        """

        if self._ledger.path is None:
            return self._ledger.record(entry)
        write = asyncio.ensure_future(asyncio.to_thread(self._ledger.record, entry))
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            await asyncio.wait({write})
            raise

    def _record_rejection(
        self, request: OperationRequest, position: int, attempt: PolicyAttempt
    ) -> None:
        remaining: list[AgreementPolicy] = list(request.policies[position + 1 :])
        next_level = remaining[0].level.value if remaining else None
        self._emit(
            "policy_attempt",
            request.operation_id,
            state=OperationState.EVALUATING.value,
            policy=attempt.policy.value,
            outcome=attempt.reason,
            detail=attempt.detail,
            replicas_run=attempt.replicas_run,
            replicas_succeeded=attempt.replicas_succeeded,
            next_policy=next_level,
        )
        if next_level is not None:
            LOGGER.info(
                "operation %s: %s %s (%s), falling back to %s",
                request.operation_id,
                attempt.policy.value,
                attempt.reason,
                attempt.detail,
                next_level,
            )

    def _emit_replica_failures(
        self, operation_id: str, policy: AgreementPolicy, batch: ReplicaBatch
    ) -> None:
        for failure in batch.failures:
            self._emit(
                "replica_failed",
                operation_id,
                policy=policy.level.value,
                **failure.to_record(),
            )

    def _warn_trivial_agreement(self, request: OperationRequest) -> None:
        if request.replica_count != 1:
            return
        if PolicyLevel.STRICT not in request.levels:
            return
        LOGGER.warning(
            "operation %s: strict agreement over a single replica is trivially "
            "accepted and gives no consistency guarantee",
            request.operation_id,
        )
        self._emit("consistency_warning", request.operation_id, replica_count=1)

    def _emit(self, event_type: str, operation_id: str, **fields: Any) -> None:
        if self._event_logger is None:
            return
        record: Mapping[str, Any] = {"operation_id": operation_id, **fields}
        self._event_logger.emit(event_type, record)


__all__ = ["FallbackOrchestrator"]
