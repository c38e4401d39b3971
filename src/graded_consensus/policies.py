"""Agreement policies deciding whether replica outputs are acceptable."""
from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from .errors import ConfigError, JudgeError
from .judge import EquivalenceJudge
from .models import CandidateResult, PolicyLevel, PolicyOutcome
from .normalize import distinct_tokens
from .utils import call_with_timeout


class AgreementPolicy(ABC):
    """Common contract for the three policy levels.

    Policies hold only their configuration; ``evaluate`` is free of side
    effects apart from the judge call it may issue.
    """

    level: ClassVar[PolicyLevel]
    strictness: ClassVar[int]

    def replicas_needed(self, replica_count: int) -> int:
        return replica_count

    def min_successes(self, replicas: int) -> int:
        return replicas

    @abstractmethod
    async def evaluate(
        self,
        candidates: Sequence[CandidateResult],
        *,
        judge: EquivalenceJudge | None = None,
        timeout_s: float | None = None,
    ) -> PolicyOutcome:
        ...

    def describe(self) -> dict[str, Any]:
        return {"kind": self.level.value}

    def __repr__(self) -> str:
        params = ", ".join(
            f"{key}={value!r}" for key, value in self.describe().items() if key != "kind"
        )
        return f"{type(self).__name__}({params})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AgreementPolicy):
            return NotImplemented
        return type(self) is type(other) and self.describe() == other.describe()

    def __hash__(self) -> int:
        return hash((type(self), tuple(sorted(self.describe().items()))))


class StrictPolicy(AgreementPolicy):
    level = PolicyLevel.STRICT
    strictness = 3

    async def evaluate(
        self,
        candidates: Sequence[CandidateResult],
        *,
        judge: EquivalenceJudge | None = None,
        timeout_s: float | None = None,
    ) -> PolicyOutcome:
        if not candidates:
            return PolicyOutcome.reject("no candidates to compare")
        ordered = _ordered(candidates)
        tokens = distinct_tokens(candidate.value for candidate in ordered)
        if len(tokens) == 1:
            # Text agrees on its normalized form; other values keep their type.
            first = ordered[0].value
            value = tokens[0] if isinstance(first, str) else first
            return PolicyOutcome.accept(value, detail=f"{len(candidates)} replica(s) agree")
        listed = ", ".join(repr(token) for token in tokens)
        return PolicyOutcome.reject(f"distinct values: {listed}")


class ComparativePolicy(AgreementPolicy):
    level = PolicyLevel.COMPARATIVE
    strictness = 2

    def __init__(self, principle: str) -> None:
        self.principle = _require_text("principle", principle, self.level)

    def describe(self) -> dict[str, Any]:
        return {"kind": self.level.value, "principle": self.principle}

    async def evaluate(
        self,
        candidates: Sequence[CandidateResult],
        *,
        judge: EquivalenceJudge | None = None,
        timeout_s: float | None = None,
    ) -> PolicyOutcome:
        if not candidates:
            return PolicyOutcome.reject("no candidates to compare")
        ordered = _ordered(candidates)
        first = ordered[0]
        if len(ordered) == 1:
            return PolicyOutcome.accept(first.value, detail="single candidate")
        if judge is None:
            raise ConfigError("comparative policy requires an equivalence judge")
        values = [candidate.value for candidate in ordered]
        verdict = await _ask_judge(judge.compare, values, self.principle, timeout_s=timeout_s)
        if isinstance(verdict, PolicyOutcome):
            return verdict
        if verdict:
            return PolicyOutcome.accept(
                first.value, detail=f"judge found {len(values)} candidates equivalent"
            )
        return PolicyOutcome.reject(
            f"judge found candidates not equivalent under {self.principle!r}"
        )


class NonComparativePolicy(AgreementPolicy):
    level = PolicyLevel.NON_COMPARATIVE
    strictness = 1

    def __init__(self, task: str, criteria: str, *, replicas: int = 1) -> None:
        self.task = _require_text("task", task, self.level)
        self.criteria = _require_text("criteria", criteria, self.level)
        if isinstance(replicas, bool) or not isinstance(replicas, int) or replicas < 1:
            raise ConfigError("non_comparative replicas must be a positive int")
        self.replicas = replicas

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.level.value,
            "task": self.task,
            "criteria": self.criteria,
            "replicas": self.replicas,
        }

    def replicas_needed(self, replica_count: int) -> int:
        return min(self.replicas, replica_count)

    def min_successes(self, replicas: int) -> int:
        return 1

    async def evaluate(
        self,
        candidates: Sequence[CandidateResult],
        *,
        judge: EquivalenceJudge | None = None,
        timeout_s: float | None = None,
    ) -> PolicyOutcome:
        if not candidates:
            return PolicyOutcome.reject("no candidate to assess")
        if judge is None:
            raise ConfigError("non_comparative policy requires an equivalence judge")
        first = _ordered(candidates)[0]
        verdict = await _ask_judge(
            judge.assess, first.value, self.task, self.criteria, timeout_s=timeout_s
        )
        if isinstance(verdict, PolicyOutcome):
            return verdict
        if verdict:
            return PolicyOutcome.accept(
                first.value, detail=f"judge approved replica {first.replica_index}"
            )
        return PolicyOutcome.reject(
            f"judge rejected replica {first.replica_index} against criteria"
        )


def _ordered(candidates: Sequence[CandidateResult]) -> list[CandidateResult]:
    return sorted(candidates, key=lambda candidate: candidate.replica_index)


def _require_text(field_name: str, value: object, level: PolicyLevel) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{level.value} policy requires a non-empty {field_name}")
    return value.strip()


async def _ask_judge(
    method: Any, *args: Any, timeout_s: float | None
) -> bool | PolicyOutcome:
    """Call the judge; service failures come back as a rejection outcome."""

    try:
        verdict = await call_with_timeout(method, *args, timeout_s=timeout_s)
    except asyncio.TimeoutError:
        return PolicyOutcome.reject(f"judge timed out after {timeout_s}s")
    except JudgeError as exc:
        return PolicyOutcome.reject(f"judge error: {exc}")
    if not isinstance(verdict, bool):
        return PolicyOutcome.reject(
            f"judge returned malformed verdict: {type(verdict).__name__}"
        )
    return verdict


_POLICY_ALIASES = {
    "strict": PolicyLevel.STRICT,
    "comparative": PolicyLevel.COMPARATIVE,
    "non_comparative": PolicyLevel.NON_COMPARATIVE,
    "noncomparative": PolicyLevel.NON_COMPARATIVE,
}


def build_policy(spec: AgreementPolicy | Mapping[str, Any] | str) -> AgreementPolicy:
    """Build a policy from a mapping such as ``{"kind": "comparative", ...}``."""

    if isinstance(spec, AgreementPolicy):
        return spec
    if isinstance(spec, str):
        payload: Mapping[str, Any] = {"kind": spec}
    elif isinstance(spec, Mapping):
        payload = spec
    else:
        raise ConfigError(f"unsupported policy spec: {spec!r}")
    raw_kind = str(payload.get("kind", "")).strip().lower().replace("-", "_")
    level = _POLICY_ALIASES.get(raw_kind)
    if level is None:
        supported = ", ".join(sorted(_POLICY_ALIASES))
        raise ConfigError(f"unknown policy kind: {raw_kind!r}. supported: {supported}")
    if level is PolicyLevel.STRICT:
        return StrictPolicy()
    if level is PolicyLevel.COMPARATIVE:
        return ComparativePolicy(payload.get("principle", ""))
    replicas = payload.get("replicas")
    return NonComparativePolicy(
        payload.get("task", ""),
        payload.get("criteria", ""),
        replicas=1 if replicas is None else replicas,
    )


def default_policies(
    *, principle: str, task: str, criteria: str
) -> tuple[AgreementPolicy, ...]:
    """Return the full Strict → Comparative → NonComparative ladder."""

    return (
        StrictPolicy(),
        ComparativePolicy(principle),
        NonComparativePolicy(task, criteria),
    )


__all__ = [
    "AgreementPolicy",
    "StrictPolicy",
    "ComparativePolicy",
    "NonComparativePolicy",
    "build_policy",
    "default_policies",
]
