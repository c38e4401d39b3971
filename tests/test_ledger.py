from __future__ import annotations

from decimal import Decimal
import json

import pytest

from graded_consensus.errors import ConfigError, EntryNotFound, OperationConflict
from graded_consensus.ledger import encode_entry, jsonable_entry, ResultLedger
from graded_consensus.models import (
    LedgerEntry,
    OperationState,
    PolicyAttempt,
    PolicyLevel,
    ReplicaFailure,
)


def _accepted(operation_id: str = "op-1") -> LedgerEntry:
    return LedgerEntry(
        operation_id=operation_id,
        status=OperationState.ACCEPTED,
        value="42",
        policy=PolicyLevel.STRICT,
        replicas_run=3,
        created_at=1_700_000_000.25,
    )


def _exhausted(operation_id: str = "op-2") -> LedgerEntry:
    return LedgerEntry(
        operation_id=operation_id,
        status=OperationState.EXHAUSTED,
        value=None,
        policy=None,
        replicas_run=4,
        history=(
            PolicyAttempt(
                policy=PolicyLevel.STRICT,
                reason="run_failure",
                detail="2 of 3 replicas succeeded, 3 required",
                replicas_run=3,
                replicas_succeeded=2,
                failures=(ReplicaFailure(1, "WorkFailure", "simulated timeout", 12),),
            ),
            PolicyAttempt(
                policy=PolicyLevel.NON_COMPARATIVE,
                reason="rejected",
                detail="judge rejected replica 0 against criteria",
                replicas_run=1,
                replicas_succeeded=1,
            ),
        ),
        created_at=1_700_000_001.5,
    )


def test_record_and_lookup() -> None:
    ledger = ResultLedger()
    entry = _accepted()

    ledger.record(entry)

    assert ledger.lookup("op-1") is entry
    assert ledger.get("op-1") is entry
    assert "op-1" in ledger
    assert len(ledger) == 1
    assert list(ledger) == [entry]


def test_lookup_unknown_id_raises_entry_not_found() -> None:
    ledger = ResultLedger()

    with pytest.raises(EntryNotFound) as excinfo:
        ledger.lookup("missing")

    assert isinstance(excinfo.value, KeyError)
    assert str(excinfo.value) == "no ledger entry for operation 'missing'"
    assert ledger.get("missing") is None


def test_entries_are_never_overwritten() -> None:
    ledger = ResultLedger()
    ledger.record(_accepted())

    with pytest.raises(OperationConflict):
        ledger.record(_accepted())

    assert ledger.lookup("op-1").value == "42"


def test_claim_reserves_id_until_released_or_recorded() -> None:
    ledger = ResultLedger()

    ledger.claim("op-1")
    assert ledger.is_in_flight("op-1")
    with pytest.raises(OperationConflict):
        ledger.claim("op-1")

    ledger.release("op-1")
    ledger.claim("op-1")
    ledger.record(_accepted())

    assert not ledger.is_in_flight("op-1")
    with pytest.raises(OperationConflict):
        ledger.claim("op-1")


def test_entries_survive_restart(tmp_path) -> None:
    path = tmp_path / "state" / "ledger.jsonl"
    ledger = ResultLedger(path)
    ledger.record(_accepted())
    ledger.record(_exhausted())

    restored = ResultLedger(path)

    assert len(restored) == 2
    assert encode_entry(restored.lookup("op-1")) == encode_entry(_accepted())
    assert encode_entry(restored.lookup("op-2")) == encode_entry(_exhausted())
    with pytest.raises(OperationConflict):
        restored.claim("op-2")


def test_encoded_line_is_sorted_json() -> None:
    line = encode_entry(_exhausted())
    record = json.loads(line)

    assert list(record) == sorted(record)
    assert record["status"] == "exhausted"
    assert record["policy"] is None
    assert record["history"][0]["failures"][0]["message"] == "simulated timeout"


def test_corrupt_ledger_line_is_a_configuration_error(tmp_path) -> None:
    path = tmp_path / "ledger.jsonl"
    path.write_text(encode_entry(_accepted()) + "\n{broken\n", encoding="utf-8")

    with pytest.raises(ConfigError, match=r"ledger\.jsonl:2"):
        ResultLedger(path)


def test_duplicate_ledger_line_is_rejected(tmp_path) -> None:
    path = tmp_path / "ledger.jsonl"
    line = encode_entry(_accepted())
    path.write_text(f"{line}\n\n{line}\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="duplicate ledger entry"):
        ResultLedger(path)


def test_invalid_ledger_record_is_rejected(tmp_path) -> None:
    path = tmp_path / "ledger.jsonl"
    path.write_text(json.dumps({"operation_id": "op", "status": "pending"}) + "\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="invalid ledger line"):
        ResultLedger(path)


def test_ledger_entry_states_are_terminal() -> None:
    with pytest.raises(ValueError):
        LedgerEntry("op", OperationState.PENDING, None, None, 0)
    with pytest.raises(ValueError):
        LedgerEntry("op", OperationState.ACCEPTED, "v", None, 1)
    with pytest.raises(ValueError):
        LedgerEntry("op", OperationState.EXHAUSTED, None, PolicyLevel.STRICT, 1)


def test_record_stores_values_in_json_form() -> None:
    ledger = ResultLedger()
    entry = LedgerEntry(
        operation_id="op-decimal",
        status=OperationState.ACCEPTED,
        value={"price": Decimal("1.50"), "tags": ("up",)},
        policy=PolicyLevel.COMPARATIVE,
        replicas_run=2,
    )

    stored = ledger.record(entry)

    assert stored.value == {"price": "1.50", "tags": ["up"]}
    assert ledger.lookup("op-decimal") is stored
    assert jsonable_entry(stored) is stored
