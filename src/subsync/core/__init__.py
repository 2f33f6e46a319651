"""
Sync engine: checkpoint store, time budget, error classification,
deduplication and the resumable loop shared by both jobs.
"""

from subsync.core.budget import BudgetExhausted, TimeBudgetGuard
from subsync.core.classifier import ClassifiedError, ErrorClassifier
from subsync.core.dedup import DedupFilter, IdentifierFormat
from subsync.core.loop import SyncCapabilities, SyncLoop
from subsync.core.state import MIRROR_ID, PULL_CURSOR, PUSH_INDEX, CheckpointStore
from subsync.core.types import (
    CandidateUnit,
    ErrorKind,
    MirrorRecord,
    Page,
    RunOutcome,
    RunResult,
    Unit,
    UnitStatus,
)

__all__ = [
    "BudgetExhausted",
    "TimeBudgetGuard",
    "ClassifiedError",
    "ErrorClassifier",
    "DedupFilter",
    "IdentifierFormat",
    "SyncCapabilities",
    "SyncLoop",
    "CheckpointStore",
    "MIRROR_ID",
    "PULL_CURSOR",
    "PUSH_INDEX",
    "CandidateUnit",
    "ErrorKind",
    "MirrorRecord",
    "Page",
    "RunOutcome",
    "RunResult",
    "Unit",
    "UnitStatus",
]
