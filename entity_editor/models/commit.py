from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .validation import ValidationResult

"""Commit protocol models: conflict records, per-row outcomes, batch aggregates."""

__all__ = [
    "CommitState",
    "Resolution",
    "ConflictRecord",
    "CommitOutcome",
    "BatchCommitResult",
]

CONFLICT_MESSAGE = "This record has been modified by another user. Please refresh and try again."


class CommitState(Enum):
    """State of one commit attempt.

    State transitions: idle → saving → (committed | conflicted | failed)
    """
    IDLE = "idle"
    SAVING = "saving"
    COMMITTED = "committed"
    CONFLICTED = "conflicted"
    FAILED = "failed"


class Resolution(Enum):
    """The only three ways a version conflict may be closed."""
    RETRY = "retry"  # Resubmit identical patch + identical (stale) base version
    REFRESH = "refresh"  # Adopt server row/version, drop local patch
    CANCEL = "cancel"  # Drop local patch, adopt nothing


@dataclass(frozen=True)
class ConflictRecord:
    """Why an OCC commit was rejected. Lives until Retry/Refresh/Cancel."""
    current_version: int  # Server's real version
    attempted_version: int  # Caller's base version
    conflicting_fields: frozenset[str]  # Keys of the rejected patch
    message: str = CONFLICT_MESSAGE


@dataclass(frozen=True)
class CommitOutcome:
    row_id: str
    state: CommitState
    new_version: int | None = None  # COMMITTED only
    conflict: ConflictRecord | None = None  # CONFLICTED only
    error: str | None = None  # FAILED only
    validation: ValidationResult | None = None  # Set when validation blocked the commit

    @property
    def success(self) -> bool:
        return self.state is CommitState.COMMITTED


@dataclass(frozen=True)
class BatchCommitResult:
    success_count: int
    failure_count: int
    outcomes: list[CommitOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[CommitOutcome]) -> BatchCommitResult:
        ok = sum(1 for o in outcomes if o.success)
        return cls(success_count=ok, failure_count=len(outcomes) - ok, outcomes=outcomes)
