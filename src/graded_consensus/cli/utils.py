from __future__ import annotations

import json
import logging

LOGGER = logging.getLogger("graded_consensus.cli")

EXIT_OK = 0
EXIT_EXECUTION_ERROR = 1
EXIT_INPUT_ERROR = 2
EXIT_NOT_ACCEPTED = 3


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _configure_logging(as_json: bool, verbose: bool = False) -> None:
    handler = logging.StreamHandler()
    if as_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


__all__ = [
    "LOGGER",
    "EXIT_OK",
    "EXIT_EXECUTION_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_NOT_ACCEPTED",
    "JsonLogFormatter",
    "_configure_logging",
]
