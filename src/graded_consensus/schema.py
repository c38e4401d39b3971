"""設定ファイルとレジャー記録を検証する Pydantic モデル。"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

__all__ = [
    "EngineConfigModel",
    "PolicySpecModel",
    "OperationRequestModel",
    "ReplicaFailureModel",
    "PolicyAttemptModel",
    "LedgerRecordModel",
]

PolicyLevelName = Literal["strict", "comparative", "non_comparative"]


class EngineConfigModel(BaseModel):
    """エンジン設定のスキーマ。"""

    model_config = ConfigDict(extra="forbid")

    replica_timeout_s: float | None = Field(default=30.0, gt=0)
    judge_timeout_s: float | None = Field(default=30.0, gt=0)
    max_concurrency: int | None = Field(default=None, ge=1)
    ledger_path: str | None = None
    metrics_path: str | None = None


class PolicySpecModel(BaseModel):
    """合意ポリシー指定のスキーマ。"""

    model_config = ConfigDict(extra="forbid")

    kind: str
    principle: str | None = None
    task: str | None = None
    criteria: str | None = None
    replicas: int | None = Field(default=None, ge=1)


class OperationRequestModel(BaseModel):
    """操作リクエストのスキーマ。"""

    model_config = ConfigDict(extra="forbid")

    operation_id: str = Field(validation_alias=AliasChoices("operation_id", "id"), min_length=1)
    params: Any = None
    replica_count: int = Field(
        validation_alias=AliasChoices("replica_count", "replicas"), ge=1
    )
    policies: list[PolicySpecModel] = Field(min_length=1)


class ReplicaFailureModel(BaseModel):
    """レプリカ失敗記録のスキーマ。"""

    model_config = ConfigDict(extra="ignore")

    replica_index: int = Field(ge=0)
    error_type: str
    message: str
    latency_ms: int = 0


class PolicyAttemptModel(BaseModel):
    """ポリシー試行履歴のスキーマ。"""

    model_config = ConfigDict(extra="ignore")

    policy: PolicyLevelName
    reason: Literal["rejected", "run_failure"]
    detail: str = ""
    replicas_run: int = Field(default=0, ge=0)
    replicas_succeeded: int = Field(default=0, ge=0)
    failures: list[ReplicaFailureModel] = Field(default_factory=list)


class LedgerRecordModel(BaseModel):
    """永続化されたレジャー 1 行のスキーマ。"""

    model_config = ConfigDict(extra="ignore")

    operation_id: str = Field(min_length=1)
    status: Literal["accepted", "exhausted"]
    value: Any = None
    policy: PolicyLevelName | None = None
    replicas_run: int = Field(default=0, ge=0)
    history: list[PolicyAttemptModel] = Field(default_factory=list)
    created_at: float = 0.0

    def as_record(self) -> dict[str, Any]:
        return self.model_dump(mode="python")
