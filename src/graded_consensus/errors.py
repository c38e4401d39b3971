"""Normalized exception hierarchy for the consensus engine."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import LedgerEntry


class ConsensusError(Exception):
    """Base class for engine-originated errors."""


class RecoverableError(ConsensusError):
    """Base class for errors the engine absorbs locally."""


class FatalError(ConsensusError):
    """Base class for errors surfaced to the caller."""


class WorkFailure(RecoverableError):
    """Raised when a single replica's work invocation fails."""


class JudgeError(RecoverableError):
    """Raised when the equivalence judge times out or answers malformed."""


class RunFailure(ConsensusError):
    """Raised when too few replicas succeeded to evaluate a policy."""

    def __init__(
        self,
        message: str,
        *,
        failures: Iterable[Any] | None = None,
        succeeded: int = 0,
        required: int = 0,
        replicas_run: int = 0,
    ) -> None:
        super().__init__(message)
        self.failures = list(failures) if failures is not None else []
        self.succeeded = succeeded
        self.required = required
        self.replicas_run = replicas_run


class ConfigError(FatalError):
    """Raised when a request, policy or engine configuration is invalid."""


class OperationConflict(FatalError):
    """Raised when an operation id is reused."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"operation {operation_id!r} was already submitted")
        self.operation_id = operation_id


class AllPoliciesExhausted(FatalError):
    """Raised when every configured policy rejected or failed."""

    def __init__(self, entry: LedgerEntry) -> None:
        levels = ", ".join(attempt.policy.value for attempt in entry.history)
        super().__init__(
            f"operation {entry.operation_id!r} exhausted all policies ({levels})"
        )
        self.entry = entry

    @property
    def history(self) -> tuple[Any, ...]:
        return self.entry.history


class EntryNotFound(ConsensusError, KeyError):
    """Raised when the ledger holds no entry for an operation id."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(operation_id)
        self.operation_id = operation_id

    def __str__(self) -> str:
        return f"no ledger entry for operation {self.operation_id!r}"


__all__ = [
    "ConsensusError",
    "RecoverableError",
    "FatalError",
    "WorkFailure",
    "JudgeError",
    "RunFailure",
    "ConfigError",
    "OperationConflict",
    "AllPoliciesExhausted",
    "EntryNotFound",
]
