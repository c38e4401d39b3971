from __future__ import annotations

from .args import parse_args
from .runner import build_engine_config, main, prepare_execution

__all__ = ["parse_args", "build_engine_config", "prepare_execution", "main"]
