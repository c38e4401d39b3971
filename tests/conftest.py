"""pytest 共通フィクスチャ: イベント記録ロガーと標準ポリシー構成。"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from graded_consensus.config import EngineConfig
from graded_consensus.models import OperationRequest
from graded_consensus.policies import AgreementPolicy, default_policies


class FakeLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        self.events.append((event_type, dict(record)))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [record for logged_event, record in self.events if logged_event == event_type]

    def types(self) -> list[str]:
        return [logged_event for logged_event, _ in self.events]


@pytest.fixture
def event_logger() -> FakeLogger:
    return FakeLogger()


@pytest.fixture
def ladder() -> tuple[AgreementPolicy, ...]:
    return default_policies(
        principle="same directional meaning",
        task="Report whether the price went up",
        criteria="States a direction of the price movement",
    )


@pytest.fixture
def make_request(ladder: tuple[AgreementPolicy, ...]):
    def _make(
        operation_id: str = "op-1",
        *,
        replica_count: int = 3,
        policies: tuple[AgreementPolicy, ...] | None = None,
        params: Any = None,
    ) -> OperationRequest:
        return OperationRequest(
            operation_id=operation_id,
            params={"question": "did the price go up?"} if params is None else params,
            replica_count=replica_count,
            policies=ladder if policies is None else policies,
        )

    return _make


@pytest.fixture
def sequential_config() -> EngineConfig:
    """Replicas run one at a time so scripted outputs map to fixed replicas."""

    return EngineConfig(replica_timeout_s=None, judge_timeout_s=None, max_concurrency=1)
