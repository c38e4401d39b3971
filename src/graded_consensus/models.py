"""Data models shared by the replica runner, policies and ledger."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Any, TYPE_CHECKING

from .errors import ConfigError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .policies import AgreementPolicy


class PolicyLevel(str, Enum):
    """Agreement policy levels ordered from strictest to most permissive."""

    STRICT = "strict"
    COMPARATIVE = "comparative"
    NON_COMPARATIVE = "non_comparative"


class OperationState(str, Enum):
    """Lifecycle states of one operation inside the orchestrator."""

    PENDING = "pending"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class CandidateResult:
    replica_index: int
    value: Any
    produced_at: float = field(default_factory=time.time)
    latency_ms: int = 0


@dataclass(frozen=True, slots=True)
class ReplicaFailure:
    replica_index: int
    error_type: str
    message: str
    latency_ms: int = 0

    @classmethod
    def from_exception(
        cls, replica_index: int, exc: BaseException, *, latency_ms: int = 0
    ) -> ReplicaFailure:
        return cls(
            replica_index=replica_index,
            error_type=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            latency_ms=latency_ms,
        )

    def summary(self) -> str:
        return f"replica {self.replica_index}: {self.error_type}: {self.message}"

    def to_record(self) -> dict[str, Any]:
        return {
            "replica_index": self.replica_index,
            "error_type": self.error_type,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }


@dataclass(frozen=True, slots=True)
class PolicyOutcome:
    """Result of applying one agreement policy to a candidate set.

    ``value`` is meaningful only when ``accepted`` is true; use the
    :meth:`accept` / :meth:`reject` helpers to build outcomes.
    """

    accepted: bool
    value: Any = None
    detail: str = ""

    @classmethod
    def accept(cls, value: Any, detail: str = "") -> PolicyOutcome:
        return cls(accepted=True, value=value, detail=detail)

    @classmethod
    def reject(cls, detail: str) -> PolicyOutcome:
        return cls(accepted=False, value=None, detail=detail)

    def __post_init__(self) -> None:
        if not self.accepted and self.value is not None:
            raise ValueError("rejected PolicyOutcome must not carry a value")


@dataclass(frozen=True, slots=True)
class PolicyAttempt:
    """One row of an operation's rejection history."""

    policy: PolicyLevel
    reason: str
    detail: str
    replicas_run: int = 0
    replicas_succeeded: int = 0
    failures: tuple[ReplicaFailure, ...] = ()

    def to_record(self) -> dict[str, Any]:
        return {
            "policy": self.policy.value,
            "reason": self.reason,
            "detail": self.detail,
            "replicas_run": self.replicas_run,
            "replicas_succeeded": self.replicas_succeeded,
            "failures": [failure.to_record() for failure in self.failures],
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> PolicyAttempt:
        return cls(
            policy=PolicyLevel(record["policy"]),
            reason=str(record["reason"]),
            detail=str(record.get("detail", "")),
            replicas_run=int(record.get("replicas_run", 0)),
            replicas_succeeded=int(record.get("replicas_succeeded", 0)),
            failures=tuple(
                ReplicaFailure(
                    replica_index=int(item["replica_index"]),
                    error_type=str(item["error_type"]),
                    message=str(item["message"]),
                    latency_ms=int(item.get("latency_ms", 0)),
                )
                for item in record.get("failures", ())
            ),
        )


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    operation_id: str
    status: OperationState
    value: Any
    policy: PolicyLevel | None
    replicas_run: int
    history: tuple[PolicyAttempt, ...] = ()
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.status not in (OperationState.ACCEPTED, OperationState.EXHAUSTED):
            raise ValueError(f"ledger entries cannot be {self.status.value}")
        if (self.status is OperationState.ACCEPTED) != (self.policy is not None):
            raise ValueError("accepted entries must name the accepting policy")

    @property
    def accepted(self) -> bool:
        return self.status is OperationState.ACCEPTED

    def to_record(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "status": self.status.value,
            "value": self.value,
            "policy": self.policy.value if self.policy is not None else None,
            "replicas_run": self.replicas_run,
            "history": [attempt.to_record() for attempt in self.history],
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LedgerEntry:
        policy = record.get("policy")
        return cls(
            operation_id=str(record["operation_id"]),
            status=OperationState(record["status"]),
            value=record.get("value"),
            policy=PolicyLevel(policy) if policy is not None else None,
            replicas_run=int(record.get("replicas_run", 0)),
            history=tuple(
                PolicyAttempt.from_record(item) for item in record.get("history", ())
            ),
            created_at=float(record.get("created_at", 0.0)),
        )


@dataclass(frozen=True)
class OperationRequest:
    operation_id: str
    params: Any
    replica_count: int
    policies: Sequence[AgreementPolicy]

    def __post_init__(self) -> None:
        operation_id = self.operation_id.strip() if isinstance(self.operation_id, str) else ""
        if not operation_id:
            raise ConfigError("operation_id must be a non-empty string")
        object.__setattr__(self, "operation_id", operation_id)

        replica_count = self.replica_count
        if isinstance(replica_count, bool) or not isinstance(replica_count, int):
            raise ConfigError("replica_count must be an int")
        if replica_count < 1:
            raise ConfigError("replica_count must be at least 1")

        policies = tuple(self.policies)
        if not policies:
            raise ConfigError("policies must not be empty")
        for previous, current in zip(policies, policies[1:]):
            if current.strictness >= previous.strictness:
                raise ConfigError(
                    "policies must be strictly decreasing in strictness: "
                    f"{previous.level.value} -> {current.level.value}"
                )
        object.__setattr__(self, "policies", policies)

    @property
    def levels(self) -> tuple[PolicyLevel, ...]:
        return tuple(policy.level for policy in self.policies)


__all__ = [
    "PolicyLevel",
    "OperationState",
    "CandidateResult",
    "ReplicaFailure",
    "PolicyOutcome",
    "PolicyAttempt",
    "LedgerEntry",
    "OperationRequest",
]
