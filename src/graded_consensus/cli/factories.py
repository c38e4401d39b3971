"""Helpers for instantiating work units and judges from CLI spec strings."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from ..judge import EquivalenceJudge, PromptJudge
from ..mock import ScriptedJudge, ScriptedWorkUnit
from ..utils import load_object
from ..work import CallableWorkUnit, WorkUnit

__all__ = [
    "parse_spec",
    "create_work_unit",
    "create_judge",
]

_VERDICT_WORDS: dict[str, bool | None] = {
    "yes": True,
    "true": True,
    "no": False,
    "false": False,
    "error": None,
}


def parse_spec(spec: str) -> tuple[str, str]:
    """Split ``spec`` into ``(prefix, remainder)``.

    Only the first ``":"`` acts as the separator so that
    ``import:package.module:attr`` keeps its object path intact.
    """

    if not isinstance(spec, str):
        raise ValueError("spec must be a string")

    prefix, sep, remainder = spec.partition(":")
    if not sep:
        raise ValueError(f"invalid spec: {spec!r}")

    prefix = prefix.strip().lower()
    remainder = remainder.strip()
    if not prefix or not remainder:
        raise ValueError(f"invalid spec: {spec!r}")

    return prefix, remainder


def _instantiate(target: Any) -> Any:
    if isinstance(target, type):
        return target()
    return target


def _import_work_unit(path: str) -> WorkUnit:
    target = _instantiate(load_object(path))
    if isinstance(target, WorkUnit):
        return target
    if callable(target):
        return CallableWorkUnit(target)
    raise ValueError(f"{path!r} is neither a work unit nor a callable")


def _import_judge(path: str) -> EquivalenceJudge:
    target = _instantiate(load_object(path))
    if isinstance(target, EquivalenceJudge):
        return target
    if callable(getattr(target, "complete", None)):
        return PromptJudge(target)
    raise ValueError(f"{path!r} is neither a judge nor a completion backend")


def _mock_judge(remainder: str) -> ScriptedJudge:
    settings: dict[str, bool | None] = {"compare": True, "assess": True}
    for item in remainder.split(","):
        key, sep, raw = item.partition("=")
        key = key.strip().lower()
        word = raw.strip().lower()
        if not sep or key not in settings or word not in _VERDICT_WORDS:
            raise ValueError(f"invalid mock judge setting: {item!r}")
        settings[key] = _VERDICT_WORDS[word]
    return ScriptedJudge(compare=settings["compare"], assess=settings["assess"])


def create_work_unit(
    spec: str,
    *,
    factories: Mapping[str, Callable[[str], WorkUnit]] | None = None,
) -> WorkUnit:
    prefix, remainder = parse_spec(spec)
    default_factories: dict[str, Callable[[str], WorkUnit]] = {
        "mock": lambda outputs: ScriptedWorkUnit(outputs.split("|")),
        "import": _import_work_unit,
    }
    if factories:
        default_factories.update(factories)
    try:
        factory = default_factories[prefix]
    except KeyError as exc:
        supported = ", ".join(sorted(default_factories))
        raise ValueError(f"unsupported work prefix: {prefix}. supported: {supported}") from exc
    return factory(remainder)


def create_judge(
    spec: str,
    *,
    factories: Mapping[str, Callable[[str], EquivalenceJudge]] | None = None,
) -> EquivalenceJudge:
    prefix, remainder = parse_spec(spec)
    default_factories: dict[str, Callable[[str], EquivalenceJudge]] = {
        "mock": _mock_judge,
        "import": _import_judge,
    }
    if factories:
        default_factories.update(factories)
    try:
        factory = default_factories[prefix]
    except KeyError as exc:
        supported = ", ".join(sorted(default_factories))
        raise ValueError(f"unsupported judge prefix: {prefix}. supported: {supported}") from exc
    return factory(remainder)
