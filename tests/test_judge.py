from __future__ import annotations

from dataclasses import dataclass

import pytest

from graded_consensus.errors import JudgeError
from graded_consensus.judge import EquivalenceJudge, PromptJudge
from graded_consensus.mock import ScriptedJudge


class _Backend:
    def __init__(self, reply: object) -> None:
        self._reply = reply
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> object:
        self.prompts.append(prompt)
        return self._reply


@dataclass
class _Reply:
    text: str


def test_compare_prompt_lists_numbered_candidates() -> None:
    backend = _Backend("YES")
    judge = PromptJudge(backend)

    assert judge.compare(["up ", {"dir": "up"}], "same directional meaning") is True

    prompt = backend.prompts[0]
    assert "same directional meaning" in prompt
    assert "1. up\n2. {\"dir\": \"up\"}" in prompt


def test_assess_prompt_carries_task_and_criteria() -> None:
    backend = _Backend(_Reply("No.\nThe answer is vague."))
    judge = PromptJudge(backend)

    assert judge.assess("it moved", "Report movement", "States a direction") is False
    assert "Task: Report movement" in backend.prompts[0]
    assert "Criteria: States a direction" in backend.prompts[0]


@pytest.mark.parametrize(
    ("reply", "expected"),
    [
        ("yes", True),
        ("  True  ", True),
        ("APPROVED", True),
        ("rejected", False),
        ("Verdict follows\nno", False),
    ],
)
def test_verdict_words(reply: str, expected: bool) -> None:
    assert PromptJudge(_Backend(reply)).compare(["a", "b"], "p") is expected


@pytest.mark.parametrize("reply", ["", "maybe", 42])
def test_replies_without_verdict_raise_judge_error(reply: object) -> None:
    with pytest.raises(JudgeError):
        PromptJudge(_Backend(reply)).compare(["a", "b"], "p")


def test_compare_requires_values() -> None:
    with pytest.raises(ValueError):
        PromptJudge(_Backend("yes")).compare([], "p")


def test_custom_templates() -> None:
    backend = _Backend("yes")
    judge = PromptJudge(
        backend,
        compare_template="P={principle}|{candidates}",
        assess_template="{task}/{criteria}/{candidate}",
    )

    judge.compare(["a"], "p")
    judge.assess("v", "t", "c")

    assert backend.prompts == ["P=p|1. a", "t/c/v"]


def test_judges_satisfy_protocol() -> None:
    assert isinstance(PromptJudge(_Backend("yes")), EquivalenceJudge)
    assert isinstance(ScriptedJudge(), EquivalenceJudge)


def test_scripted_judge_replays_then_repeats_last_verdict() -> None:
    judge = ScriptedJudge(compare=[False, True], assess=None)

    assert judge.compare(["a"], "p") is False
    assert judge.compare(["a"], "p") is True
    assert judge.compare(["a"], "p") is True
    with pytest.raises(JudgeError):
        judge.assess("a", "t", "c")
