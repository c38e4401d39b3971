"""エンジン設定と操作リクエストの読み込みユーティリティ。"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError
import yaml

from .errors import ConfigError
from .models import OperationRequest
from .policies import build_policy
from .schema import EngineConfigModel, OperationRequestModel

__all__ = [
    "EngineConfig",
    "load_engine_config",
    "load_operation_requests",
    "request_from_mapping",
]

DEFAULT_REPLICA_TIMEOUT_S = 30.0
DEFAULT_JUDGE_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class EngineConfig:
    """レプリカ実行とジャッジ呼び出しの設定。"""

    replica_timeout_s: float | None = DEFAULT_REPLICA_TIMEOUT_S
    judge_timeout_s: float | None = DEFAULT_JUDGE_TIMEOUT_S
    max_concurrency: int | None = None
    ledger_path: Path | None = None
    metrics_path: Path | None = None

    def __post_init__(self) -> None:
        for name in ("replica_timeout_s", "judge_timeout_s"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive")
        max_concurrency = self.max_concurrency
        if max_concurrency is not None:
            if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
                raise ConfigError("max_concurrency must be an int")
            if max_concurrency <= 0:
                raise ConfigError("max_concurrency must be a positive integer")


def _format_validation_error(source: str, exc: ValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part is not None)
        message = error.get("msg", "未知のエラー")
        if location:
            details.append(f"{location}: {message}")
        else:
            details.append(message)
    summary = "; ".join(details)
    return f"設定ファイルの検証に失敗しました ({source}): {summary}"


def _load_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"設定ファイルを読み込めません ({path}): {exc}") from exc
    suffix = path.suffix.lower()
    try:
        if suffix == ".jsonl":
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        if suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"設定ファイルを解析できません ({path}): {exc}") from None


def load_engine_config(path: str | Path) -> EngineConfig:
    """エンジン設定を読み込む。"""

    path = Path(path)
    data = _load_document(path)
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"設定ファイルの内容が辞書ではありません: {path}")
    try:
        model = EngineConfigModel.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(str(path), exc)) from None
    return EngineConfig(
        replica_timeout_s=model.replica_timeout_s,
        judge_timeout_s=model.judge_timeout_s,
        max_concurrency=model.max_concurrency,
        ledger_path=Path(model.ledger_path) if model.ledger_path else None,
        metrics_path=Path(model.metrics_path) if model.metrics_path else None,
    )


def request_from_mapping(
    data: Mapping[str, Any], *, source: str = "<request>"
) -> OperationRequest:
    """辞書から操作リクエストを構築する。"""

    try:
        model = OperationRequestModel.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(source, exc)) from None
    policies = [build_policy(spec.model_dump(exclude_none=True)) for spec in model.policies]
    return OperationRequest(
        operation_id=model.operation_id,
        params=model.params,
        replica_count=model.replica_count,
        policies=policies,
    )


def load_operation_requests(path: str | Path) -> list[OperationRequest]:
    """単一または複数の操作リクエストを読み込む。

    ファイルは 1 件の辞書、``requests`` キーを持つ辞書、または辞書の配列を受け付ける。
    """

    path = Path(path)
    data = _load_document(path)
    if isinstance(data, Mapping) and "requests" in data:
        items = data["requests"]
    elif isinstance(data, Mapping):
        items = [data]
    else:
        items = data
    if not isinstance(items, list) or not items:
        raise ConfigError(f"リクエストが見つかりません: {path}")
    requests: list[OperationRequest] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ConfigError(f"リクエストが辞書ではありません ({path}#{index})")
        requests.append(request_from_mapping(item, source=f"{path}#{index}"))
    return requests
