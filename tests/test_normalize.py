from __future__ import annotations

from decimal import Decimal

import pytest

pytest.importorskip("hypothesis")
from hypothesis import given
from hypothesis import strategies as st

from graded_consensus.normalize import distinct_tokens, normalize_value


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("42", "42"),
        ("42.0", "42"),
        (" 42 \n", "42"),
        ("+42.000", "42"),
        ("4.2e1", "42"),
        ("0.50", "0.5"),
        ("-0.0", "0"),
        (".5", "0.5"),
        (42, "42"),
        (42.0, "42"),
        (0.1, "0.1"),
        (Decimal("3.1400"), "3.14"),
    ],
)
def test_numeric_forms_share_one_token(raw: object, expected: str) -> None:
    assert normalize_value(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("TRUE", "true"),
        (" False ", "false"),
        (True, "true"),
        (False, "false"),
        (None, "null"),
    ],
)
def test_booleans_are_lowercased(raw: object, expected: str) -> None:
    assert normalize_value(raw) == expected


def test_other_text_keeps_case_and_inner_spacing() -> None:
    assert normalize_value("  Yes, it went UP  ") == "Yes, it went UP"
    assert normalize_value("Yes") != normalize_value("yes")


def test_json_documents_ignore_key_order_and_integral_floats() -> None:
    left = normalize_value('{"b": 1, "a": [2.0, "x"]}')
    right = normalize_value({"a": [2, "x"], "b": 1})

    assert left == right == '{"a":[2,"x"],"b":1}'


def test_invalid_json_text_is_kept_verbatim() -> None:
    assert normalize_value(" {not json ") == "{not json"


def test_huge_exponents_stay_scientific() -> None:
    assert normalize_value("1e400") == "1E+400"
    assert normalize_value(10**70) == normalize_value("1e70")


def test_bytes_are_decoded() -> None:
    assert normalize_value(b" 7.0 ") == "7"


def test_distinct_tokens_preserves_first_seen_order() -> None:
    assert distinct_tokens(["42", "b", "42.0", " b ", "a"]) == ["42", "b", "a"]


@given(st.integers(min_value=-(10**30), max_value=10**30))
def test_integer_spellings_agree(number: int) -> None:
    token = normalize_value(number)

    assert normalize_value(str(number)) == token
    assert normalize_value(f"{number}.0") == token
    assert normalize_value(f"  {number}\t") == token


@given(st.text())
def test_surrounding_whitespace_never_matters(text: str) -> None:
    assert normalize_value(f" \n{text}\t ") == normalize_value(text)


@given(st.text())
def test_normalization_is_idempotent_for_plain_text(text: str) -> None:
    token = normalize_value(text)

    assert normalize_value(token) == token
