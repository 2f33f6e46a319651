"""
Value types shared by the sync engine, the sources and the jobs.

Kept free of I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

P = TypeVar("P")

CHANNEL_URL_TEMPLATE = "https://www.youtube.com/channel/{identifier}"


class RunOutcome(StrEnum):
    """How a single invocation of a job ended."""

    COMPLETED = "completed"  # full range exhausted, checkpoint deleted
    YIELDED_ON_BUDGET = "yielded_on_budget"  # time guard expired, checkpoint advanced
    YIELDED_ON_QUOTA = "yielded_on_quota"  # quota exhausted, checkpoint frozen
    YIELDED_ON_ERROR = "yielded_on_error"  # listing call failed, state untouched
    FATAL = "fatal"  # configuration/store failure, operator attention needed


class ErrorKind(StrEnum):
    """Classification of a failure raised by a remote or store call."""

    QUOTA = "quota"
    TRANSIENT = "transient"
    FATAL = "fatal"


class UnitStatus(StrEnum):
    """Result of applying one unit of work."""

    APPLIED = "applied"  # side effect performed and confirmed
    SKIPPED = "skipped"  # already satisfied, no remote call made


@dataclass(frozen=True)
class MirrorRecord:
    """One data row of the tabular mirror."""

    identifier: str
    display_name: str
    url: str

    @classmethod
    def for_channel(cls, identifier: str, display_name: str | None = None) -> MirrorRecord:
        return cls(
            identifier=identifier,
            display_name=display_name or "",
            url=CHANNEL_URL_TEMPLATE.format(identifier=identifier),
        )


@dataclass
class CandidateUnit:
    """
    One identifier awaiting reconciliation by the Pusher.

    ``position`` is the zero-based ordinal of the row in the mirror and is the
    value the push checkpoint refers to. ``remote_present`` is computed per
    run from the pre-flight listing and never persisted.
    """

    identifier: str
    position: int
    remote_present: bool = False


@dataclass(frozen=True)
class Page:
    """One page returned by the remote listing call."""

    items: list[MirrorRecord]
    next_cursor: str | None = None

    @property
    def is_last(self) -> bool:
        return not self.next_cursor


@dataclass(frozen=True)
class Unit(Generic[P]):
    """
    One unit of work handed to the sync loop.

    ``position`` is the checkpoint value meaning "this unit not yet applied";
    ``next_position`` is the value once it is. ``next_position`` of ``None``
    marks the last unit of the collection.
    """

    position: P
    next_position: P | None
    payload: Any
    label: str = ""


@dataclass
class RunResult:
    """Summary of one job invocation, returned to the caller and logged."""

    job: str
    outcome: RunOutcome
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    units: int = 0
    checkpoint: str | None = None
    error: str | None = None
    elapsed: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is not RunOutcome.FATAL

    def summary(self) -> str:
        parts = [
            f"job={self.job}",
            f"outcome={self.outcome.value}",
            f"units={self.units}",
            f"applied={self.applied}",
            f"skipped={self.skipped}",
            f"failed={self.failed}",
            f"checkpoint={self.checkpoint if self.checkpoint is not None else '-'}",
            f"elapsed={self.elapsed:.2f}s",
        ]
        if self.error:
            parts.append(f"error={self.error}")
        return " ".join(parts)
