"""Deterministic normalization used by the strict agreement policy."""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
import json
import math
import re
from typing import Any

_NUMERIC_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_BOOLEAN_TOKENS = {"true", "false"}
# Beyond this exponent numbers keep scientific notation.
_MAX_PLAIN_EXPONENT = 64


def normalize_value(value: Any) -> str:
    """Return the canonical token compared by the strict policy.

    Whitespace is trimmed, ``true``/``false`` are lower-cased, numeric
    literals are rendered through :class:`~decimal.Decimal` so that ``"42"``
    and ``"42.0"`` agree, and JSON documents are dumped with sorted keys.
    Any other text is kept verbatim.
    """

    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return _canonical_decimal(Decimal(value))
    if isinstance(value, float | Decimal):
        return _normalize_number(value)
    if isinstance(value, bytes | bytearray):
        return _normalize_text(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, str):
        return _normalize_text(value)
    if isinstance(value, Mapping) or isinstance(value, Sequence):
        return _dump_json(value)
    return _normalize_text(str(value))


def distinct_tokens(values: Iterable[Any]) -> list[str]:
    """Return normalized tokens in first-seen order without duplicates."""

    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(normalize_value(value), None)
    return list(seen)


def _normalize_text(text: str) -> str:
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered in _BOOLEAN_TOKENS:
        return lowered
    if _NUMERIC_PATTERN.fullmatch(stripped):
        try:
            return _canonical_decimal(Decimal(stripped))
        except InvalidOperation:  # pragma: no cover - pattern guards parsing
            return stripped
    if stripped[:1] in {"{", "["}:
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            return stripped
        return _dump_json(parsed)
    return stripped


def _normalize_number(value: float | Decimal) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return repr(value)
    if isinstance(value, Decimal) and not value.is_finite():
        return str(value)
    number = Decimal(repr(value)) if isinstance(value, float) else value
    return _canonical_decimal(number)


def _canonical_decimal(number: Decimal) -> str:
    if abs(number.adjusted()) > _MAX_PLAIN_EXPONENT:
        return str(number.normalize())
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def _canonical_structure(value: Any) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, int | float):
        return value
    if isinstance(value, Mapping):
        return {str(key): _canonical_structure(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, bytes | bytearray):
        return [_canonical_structure(item) for item in value]
    return str(value)


def _dump_json(value: Any) -> str:
    return json.dumps(
        _canonical_structure(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


__all__ = ["normalize_value", "distinct_tokens"]
