"""Structured event logging for the consensus engine."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
import logging
from pathlib import Path
import sys
from threading import Lock
import time
from typing import Any, Protocol, TextIO

PathLike = str | Path

LOGGER = logging.getLogger(__name__)


class EventLogger(Protocol):
    """Protocol for structured event loggers."""

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        """Persist ``record`` for ``event_type``."""


def _payload(event_type: str, record: Mapping[str, Any]) -> dict[str, Any]:
    payload = dict(record)
    payload.setdefault("event", event_type)
    payload.setdefault("ts", time.time())
    return payload


class JsonlLogger:
    """Append structured events to a JSONL file with basic locking."""

    def __init__(self, path: PathLike) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        payload = _payload(event_type, record)

        parent = self._path.parent
        if parent != Path(""):
            parent.mkdir(parents=True, exist_ok=True)

        line = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class StdLogger:
    """Emit structured events to a text stream as JSON."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stderr
        self._lock = Lock()

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        line = json.dumps(_payload(event_type, record), ensure_ascii=False, default=str)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()


class CompositeLogger:
    """Fan out events to multiple loggers while isolating failures."""

    def __init__(self, loggers: Iterable[EventLogger] | None = None) -> None:
        self._loggers: list[EventLogger] = list(loggers or ())
        self._lock = Lock()

    def add(self, logger: EventLogger) -> None:
        with self._lock:
            self._loggers.append(logger)

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            loggers = tuple(self._loggers)

        for logger in loggers:
            try:
                logger.emit(event_type, record)
            except Exception:  # pragma: no cover - logger isolation
                LOGGER.exception("event logger %r failed for %s", logger, event_type)


def resolve_event_logger(
    logger: EventLogger | None, metrics_path: PathLike | None
) -> EventLogger | None:
    """Return ``logger``, a JSONL logger for ``metrics_path``, or both."""

    if metrics_path is None:
        return logger
    jsonl = JsonlLogger(metrics_path)
    if logger is None:
        return jsonl
    return CompositeLogger([logger, jsonl])


__all__ = [
    "EventLogger",
    "JsonlLogger",
    "StdLogger",
    "CompositeLogger",
    "resolve_event_logger",
]
