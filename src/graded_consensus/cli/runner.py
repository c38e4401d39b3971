from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
import sys

from ..config import EngineConfig, load_engine_config, load_operation_requests
from ..errors import AllPoliciesExhausted, ConfigError, EntryNotFound, OperationConflict
from ..ledger import ResultLedger
from ..models import LedgerEntry, OperationRequest
from ..orchestrator import FallbackOrchestrator
from .args import parse_args
from .factories import create_judge, create_work_unit
from .io import format_conflict, format_entry
from .utils import (
    _configure_logging,
    EXIT_EXECUTION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_NOT_ACCEPTED,
    EXIT_OK,
    LOGGER,
)

_Result = LedgerEntry | AllPoliciesExhausted | OperationConflict


def build_engine_config(args: argparse.Namespace) -> EngineConfig:
    config = load_engine_config(args.config) if args.config else EngineConfig()
    overrides: dict[str, object] = {}
    if args.ledger:
        overrides["ledger_path"] = Path(args.ledger)
    if args.metrics:
        overrides["metrics_path"] = Path(args.metrics)
    if args.replica_timeout is not None:
        overrides["replica_timeout_s"] = args.replica_timeout
    if args.judge_timeout is not None:
        overrides["judge_timeout_s"] = args.judge_timeout
    if args.max_concurrency is not None:
        overrides["max_concurrency"] = args.max_concurrency
    return replace(config, **overrides) if overrides else config


def prepare_execution(
    args: argparse.Namespace,
) -> tuple[FallbackOrchestrator, list[OperationRequest]]:
    config = build_engine_config(args)
    requests = load_operation_requests(args.request)
    work_unit = create_work_unit(args.work)
    judge = create_judge(args.judge) if args.judge else None
    return FallbackOrchestrator(work_unit, judge=judge, config=config), requests


async def _submit_all(
    orchestrator: FallbackOrchestrator, requests: Sequence[OperationRequest]
) -> list[_Result]:
    results: list[_Result] = []
    for request in requests:
        try:
            results.append(await orchestrator.submit(request))
        except (AllPoliciesExhausted, OperationConflict) as exc:
            results.append(exc)
    return results


def run_command(args: argparse.Namespace) -> int:
    orchestrator, requests = prepare_execution(args)
    results = asyncio.run(_submit_all(orchestrator, requests))
    exit_code = EXIT_OK
    for result in results:
        if isinstance(result, LedgerEntry):
            print(format_entry(result, args.out_format))
        elif isinstance(result, AllPoliciesExhausted):
            print(format_entry(result.entry, args.out_format))
            exit_code = EXIT_NOT_ACCEPTED
        else:
            print(format_conflict(result, args.out_format))
            exit_code = EXIT_NOT_ACCEPTED
    return exit_code


def show_command(args: argparse.Namespace) -> int:
    path = Path(args.ledger)
    if not path.exists():
        print(f"ledger not found: {path}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    ledger = ResultLedger(path)
    try:
        entry = ledger.lookup(args.operation_id)
    except EntryNotFound as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INPUT_ERROR
    print(format_entry(entry, args.out_format))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.log_json, args.verbose)
    try:
        if args.command == "run":
            return run_command(args)
        return show_command(args)
    except (ConfigError, ValueError, ImportError, OSError) as exc:
        print(f"Input error: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except KeyboardInterrupt:
        LOGGER.warning("interrupted; in-flight operations were not recorded")
        return EXIT_EXECUTION_ERROR


__all__ = ["build_engine_config", "prepare_execution", "run_command", "show_command", "main"]
