from __future__ import annotations

import argparse
from collections.abc import Sequence


def _parse_positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:  # pragma: no cover - argparse reports error
        raise argparse.ArgumentTypeError("value must be numeric") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return parsed


def _parse_positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:  # pragma: no cover - argparse reports error
        raise argparse.ArgumentTypeError("value must be an integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="graded-consensus",
        description="Run work on replicas and accept it under degrading agreement policies.",
    )
    parser.add_argument("--log-json", action="store_true", dest="log_json", help="emit logs as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="submit operation requests")
    run.add_argument("--request", required=True, help="request file (yaml, json or jsonl)")
    run.add_argument("--config", help="engine config file (yaml or json)")
    run.add_argument("--work", required=True, help="work unit spec: mock:<v1>|<v2> or import:module:attr")
    run.add_argument("--judge", help="judge spec: mock:compare=yes,assess=no or import:module:attr")
    run.add_argument("--ledger", help="append-only JSONL ledger path")
    run.add_argument("--metrics", help="JSONL path for structured events")
    run.add_argument("--replica-timeout", dest="replica_timeout", type=_parse_positive_float)
    run.add_argument("--judge-timeout", dest="judge_timeout", type=_parse_positive_float)
    run.add_argument("--max-concurrency", dest="max_concurrency", type=_parse_positive_int)
    run.add_argument("--out-format", dest="out_format", default="text", choices=("text", "json"))

    show = subparsers.add_parser("show", help="print a recorded ledger entry")
    show.add_argument("--ledger", required=True, help="append-only JSONL ledger path")
    show.add_argument("--id", required=True, dest="operation_id")
    show.add_argument("--out-format", dest="out_format", default="text", choices=("text", "json"))
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


__all__ = ["build_parser", "parse_args"]
