"""Equivalence judge interface and a prompt-driven implementation."""
from __future__ import annotations

from collections.abc import Awaitable, Sequence
import json
import re
from typing import Any, Protocol, runtime_checkable

from .errors import JudgeError


@runtime_checkable
class EquivalenceJudge(Protocol):
    """External service grading semantic equivalence or quality.

    Both entry points may be coroutine functions; the policies bound every
    call with a timeout.
    """

    def compare(self, values: Sequence[Any], principle: str) -> bool | Awaitable[bool]:
        ...

    def assess(self, value: Any, task: str, criteria: str) -> bool | Awaitable[bool]:
        ...


@runtime_checkable
class JudgeBackend(Protocol):
    """Text completion backend used by :class:`PromptJudge`."""

    def complete(self, prompt: str) -> str:
        ...


class PromptJudge:
    """
    Judge backed by a text completion model.
    - renders the candidates into a compare/assess prompt
    - reads a YES/NO verdict from the first line of the reply
    """

    name = "prompt"

    def __init__(
        self,
        backend: JudgeBackend,
        *,
        compare_template: str | None = None,
        assess_template: str | None = None,
    ) -> None:
        self._backend = backend
        self._compare_template = compare_template or DEFAULT_COMPARE_TEMPLATE
        self._assess_template = assess_template or DEFAULT_ASSESS_TEMPLATE

    def compare(self, values: Sequence[Any], principle: str) -> bool:
        if not values:
            raise ValueError("compare: values must be non-empty")
        rows = [f"{index}. {_render(value)}" for index, value in enumerate(values, start=1)]
        prompt = self._compare_template.format(
            principle=principle.strip(), candidates="\n".join(rows)
        )
        return self._ask(prompt)

    def assess(self, value: Any, task: str, criteria: str) -> bool:
        prompt = self._assess_template.format(
            task=task.strip(), criteria=criteria.strip(), candidate=_render(value)
        )
        return self._ask(prompt)

    def _ask(self, prompt: str) -> bool:
        reply = self._backend.complete(prompt)
        text = getattr(reply, "text", reply)
        if not isinstance(text, str):
            raise JudgeError(f"judge returned non-text reply: {type(text).__name__}")
        verdict = _parse_verdict(text)
        if verdict is None:
            raise JudgeError(f"judge reply has no verdict: {text[:80]!r}")
        return verdict


DEFAULT_COMPARE_TEMPLATE = (
    """You are a strict evaluator.
Decide whether all of the following candidate answers are equivalent
under this principle: {principle}

Candidates:
{candidates}

Rules:
- Output only YES or NO on the first line.
- Do not add explanations.
""".strip()
)

DEFAULT_ASSESS_TEMPLATE = (
    """You are a strict evaluator.
Task: {task}
Criteria: {criteria}

Candidate answer:
{candidate}

Rules:
- Output only YES if the answer satisfies the criteria, otherwise NO.
- Do not add explanations.
""".strip()
)

_VERDICT_PATTERN = re.compile(r"\b(yes|no|true|false|approve[d]?|reject(?:ed)?)\b", re.IGNORECASE)
_POSITIVE = {"yes", "true", "approve", "approved"}


def _parse_verdict(text: str) -> bool | None:
    """
    Extract a boolean verdict from the reply.
    The first line wins; otherwise the first verdict word anywhere.
    """

    if not text or not text.strip():
        return None

    first_line = text.strip().splitlines()[0]
    for chunk in (first_line, text):
        match = _VERDICT_PATTERN.search(chunk)
        if match:
            return match.group(1).lower() in _POSITIVE
    return None


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


__all__ = [
    "EquivalenceJudge",
    "JudgeBackend",
    "PromptJudge",
    "DEFAULT_COMPARE_TEMPLATE",
    "DEFAULT_ASSESS_TEMPLATE",
]
