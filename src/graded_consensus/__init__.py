"""Degrading-consensus execution engine."""
from __future__ import annotations

from .config import EngineConfig, load_engine_config, load_operation_requests
from .errors import (
    AllPoliciesExhausted,
    ConfigError,
    ConsensusError,
    EntryNotFound,
    JudgeError,
    OperationConflict,
    RunFailure,
    WorkFailure,
)
from .judge import EquivalenceJudge, PromptJudge
from .ledger import ResultLedger
from .models import (
    CandidateResult,
    LedgerEntry,
    OperationRequest,
    OperationState,
    PolicyAttempt,
    PolicyLevel,
    PolicyOutcome,
)
from .orchestrator import FallbackOrchestrator
from .policies import (
    AgreementPolicy,
    build_policy,
    ComparativePolicy,
    default_policies,
    NonComparativePolicy,
    StrictPolicy,
)
from .replicas import ReplicaBatch, ReplicaRunner
from .work import CallableWorkUnit, WorkUnit

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AgreementPolicy",
    "AllPoliciesExhausted",
    "CallableWorkUnit",
    "CandidateResult",
    "ComparativePolicy",
    "ConfigError",
    "ConsensusError",
    "EngineConfig",
    "EntryNotFound",
    "EquivalenceJudge",
    "FallbackOrchestrator",
    "JudgeError",
    "LedgerEntry",
    "NonComparativePolicy",
    "OperationConflict",
    "OperationRequest",
    "OperationState",
    "PolicyAttempt",
    "PolicyLevel",
    "PolicyOutcome",
    "PromptJudge",
    "ReplicaBatch",
    "ReplicaRunner",
    "ResultLedger",
    "RunFailure",
    "StrictPolicy",
    "WorkFailure",
    "WorkUnit",
    "build_policy",
    "default_policies",
    "load_engine_config",
    "load_operation_requests",
]
