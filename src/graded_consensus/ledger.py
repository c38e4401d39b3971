"""Append-only result ledger keyed by operation id."""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace
import json
import logging
from pathlib import Path
from threading import Lock

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from .errors import ConfigError, EntryNotFound, OperationConflict
from .models import LedgerEntry
from .observability import PathLike
from .schema import LedgerRecordModel

LOGGER = logging.getLogger(__name__)


def encode_entry(entry: LedgerEntry) -> str:
    """Return the deterministic JSON line stored for ``entry``."""

    return json.dumps(entry.to_record(), ensure_ascii=False, sort_keys=True)


def jsonable_entry(entry: LedgerEntry) -> LedgerEntry:
    """Return ``entry`` with its value converted to plain JSON data.

    Dates, decimals, sets and dataclasses become their JSON forms; anything
    pydantic cannot represent falls back to ``str``.
    """

    value = to_jsonable_python(entry.value, fallback=str)
    if value == entry.value and type(value) is type(entry.value):
        return entry
    return replace(entry, value=value)


class ResultLedger:
    """Permanent record of accepted and exhausted operations.

    Entries are never mutated or removed. Operation ids are reserved with
    :meth:`claim` while an operation is in flight so that concurrent
    submissions of one id are single-writer-wins. When ``path`` is given,
    each entry is appended to a JSONL file and existing lines are replayed
    on start-up.
    """

    def __init__(self, path: PathLike | None = None) -> None:
        self._entries: dict[str, LedgerEntry] = {}
        self._in_flight: set[str] = set()
        self._lock = Lock()
        self._path = Path(path) if path is not None else None
        if self._path is not None and self._path.exists():
            self._replay(self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    def _replay(self, path: Path) -> None:
        text = path.read_text(encoding="utf-8")
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                model = LedgerRecordModel.model_validate(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ConfigError(f"invalid ledger line ({path}:{lineno}): {exc.msg}") from None
            except ValidationError as exc:
                raise ConfigError(
                    f"invalid ledger line ({path}:{lineno}): {exc.error_count()} error(s)"
                ) from None
            entry = LedgerEntry.from_record(model.as_record())
            if entry.operation_id in self._entries:
                raise ConfigError(
                    f"duplicate ledger entry ({path}:{lineno}): {entry.operation_id!r}"
                )
            self._entries[entry.operation_id] = entry
        LOGGER.info("replayed %d ledger entries from %s", len(self._entries), path)

    def claim(self, operation_id: str) -> None:
        """Reserve ``operation_id`` for an in-flight operation."""

        with self._lock:
            if operation_id in self._entries or operation_id in self._in_flight:
                raise OperationConflict(operation_id)
            self._in_flight.add(operation_id)

    def release(self, operation_id: str) -> None:
        """Drop an in-flight reservation without recording anything."""

        with self._lock:
            self._in_flight.discard(operation_id)

    def record(self, entry: LedgerEntry) -> LedgerEntry:
        """Append ``entry`` and return the stored, JSON-safe copy."""

        entry = jsonable_entry(entry)
        with self._lock:
            if entry.operation_id in self._entries:
                raise OperationConflict(entry.operation_id)
            if self._path is not None:
                line = encode_entry(entry)
                parent = self._path.parent
                if parent != Path(""):
                    parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            self._entries[entry.operation_id] = entry
            self._in_flight.discard(entry.operation_id)
        return entry

    def lookup(self, operation_id: str) -> LedgerEntry:
        with self._lock:
            try:
                return self._entries[operation_id]
            except KeyError:
                raise EntryNotFound(operation_id) from None

    def get(self, operation_id: str) -> LedgerEntry | None:
        with self._lock:
            return self._entries.get(operation_id)

    def is_in_flight(self, operation_id: str) -> bool:
        with self._lock:
            return operation_id in self._in_flight

    def entries(self) -> list[LedgerEntry]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, operation_id: object) -> bool:
        with self._lock:
            return operation_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.entries())


__all__ = ["ResultLedger", "encode_entry", "jsonable_entry"]
