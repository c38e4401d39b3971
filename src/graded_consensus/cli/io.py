from __future__ import annotations

import json
from typing import Any

from ..errors import OperationConflict
from ..models import LedgerEntry


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def format_entry(entry: LedgerEntry, out_format: str) -> str:
    if out_format == "json":
        return json.dumps(entry.to_record(), ensure_ascii=False, sort_keys=True)
    if entry.accepted:
        assert entry.policy is not None
        return "\t".join(
            (entry.operation_id, entry.status.value, entry.policy.value, _render_value(entry.value))
        )
    lines = [f"{entry.operation_id}\t{entry.status.value}"]
    for attempt in entry.history:
        lines.append(f"  - {attempt.policy.value}: {attempt.reason}: {attempt.detail}")
    return "\n".join(lines)


def format_conflict(error: OperationConflict, out_format: str) -> str:
    if out_format == "json":
        return json.dumps(
            {"operation_id": error.operation_id, "status": "conflict", "error": str(error)},
            ensure_ascii=False,
            sort_keys=True,
        )
    return f"{error.operation_id}\tconflict"


__all__ = ["format_entry", "format_conflict"]
