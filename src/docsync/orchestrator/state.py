"""
Sync Run State.

Phase tracking and per-unit results for a synchronization run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from docsync.classifier import ChangeSet
from docsync.modules.assignment import AssignmentResult


class SyncPhase(str, Enum):
    """Current phase of a sync run."""

    NOT_STARTED = "not_started"
    DETECT = "detect"
    GENERATE_NEW = "generate_new"
    UPDATE_CHANGED = "update_changed"
    DELETE = "delete"
    REASSIGN = "reassign"
    REGENERATE_MODULES = "regenerate_modules"
    ADVANCE = "advance"
    COMPLETED = "completed"
    FAILED = "failed"


class UnitKind(str, Enum):
    """What a unit of sync work operates on."""

    FILE = "file"
    MODULE = "module"
    ASSIGNMENT = "assignment"
    INDEX = "index"


class UnitOutcome(str, Enum):
    """Final outcome of a unit.

    REQUEUED means the unit was still rate limited when its requeue budget
    ran out; it is pending, not done.
    """

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    REQUEUED = "requeued"
    FAILED = "failed"


@dataclass
class UnitResult:
    """Result of running one unit.

    Attributes:
        key: File path, module slug or assignment label
        kind: Unit kind
        outcome: Final outcome
        attempts: Attempts made, across requeues
        requeues: Times the unit was requeued after rate limiting
        error: Last error message
        error_type: Class name of the last error
        retryable: Whether a later run may succeed without intervention
    """

    key: str
    kind: UnitKind
    outcome: UnitOutcome = UnitOutcome.FAILED
    attempts: int = 0
    requeues: int = 0
    error: str | None = None
    error_type: str | None = None
    retryable: bool = False

    @property
    def blocks_advance(self) -> bool:
        """True if this result must keep the baseline where it is."""
        if self.kind is UnitKind.INDEX:
            # The module index never holds the baseline
            return False
        if self.outcome is UnitOutcome.REQUEUED:
            return True
        return self.outcome is UnitOutcome.FAILED and self.retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "key": self.key,
            "kind": self.kind.value,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
            "requeues": self.requeues,
            "error": self.error,
            "error_type": self.error_type,
            "retryable": self.retryable,
        }


@dataclass
class OutcomeCounts:
    """Counts of unit outcomes."""

    succeeded: int = 0
    skipped: int = 0
    requeued: int = 0
    failed: int = 0

    def add(self, outcome: UnitOutcome) -> None:
        """Count one outcome."""
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.requeued + self.failed

    def to_dict(self) -> dict[str, int]:
        return {
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "requeued": self.requeued,
            "failed": self.failed,
        }


@dataclass
class SyncState:
    """Live state of a run, handed to progress callbacks.

    Attributes:
        phase: Current phase
        from_revision: Base revision
        head: Target revision
        start_time: When the run started
        units_total: Units scheduled in the current phase
        units_done: Units finished in the current phase
        errors: Run-level errors
    """

    phase: SyncPhase = SyncPhase.NOT_STARTED
    from_revision: str | None = None
    head: str | None = None
    start_time: datetime | None = None
    units_total: int = 0
    units_done: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert state to dictionary."""
        return {
            "phase": self.phase.value,
            "from_revision": self.from_revision,
            "head": self.head,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "units_total": self.units_total,
            "units_done": self.units_done,
            "errors": self.errors,
        }


@dataclass
class SyncReport:
    """Outcome of a sync run.

    A run only counts as succeeded when no unit is pending a retry and no
    unit failed.
    """

    from_revision: str | None = None
    to_revision: str | None = None
    dry_run: bool = False
    change_set: Optional[ChangeSet] = None
    files: OutcomeCounts = field(default_factory=OutcomeCounts)
    modules: OutcomeCounts = field(default_factory=OutcomeCounts)
    results: list[UnitResult] = field(default_factory=list)
    assignment: Optional[AssignmentResult] = None
    baseline_advanced: bool = False

    def add(self, result: UnitResult) -> None:
        """Record a unit result and count it."""
        self.results.append(result)
        if result.kind is UnitKind.FILE:
            self.files.add(result.outcome)
        elif result.kind is UnitKind.MODULE:
            self.modules.add(result.outcome)

    @property
    def pending(self) -> list[UnitResult]:
        """Units still waiting on a rate limit."""
        return [r for r in self.results if r.outcome is UnitOutcome.REQUEUED]

    @property
    def failures(self) -> list[UnitResult]:
        """Units that failed."""
        return [r for r in self.results if r.outcome is UnitOutcome.FAILED]

    @property
    def can_advance(self) -> bool:
        """True if no result holds the baseline back."""
        return not any(r.blocks_advance for r in self.results)

    @property
    def succeeded(self) -> bool:
        """True only if every unit succeeded or was skipped."""
        return not self.pending and not self.failures

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary."""
        return {
            "from_revision": self.from_revision,
            "to_revision": self.to_revision,
            "dry_run": self.dry_run,
            "succeeded": self.succeeded,
            "baseline_advanced": self.baseline_advanced,
            "changes": self.change_set.summary() if self.change_set else None,
            "files": self.files.to_dict(),
            "modules": self.modules.to_dict(),
            "assignment": (
                {
                    "files_assigned": self.assignment.files_assigned,
                    "modules_created": self.assignment.created,
                    "low_confidence": self.assignment.low_confidence,
                }
                if self.assignment
                else None
            ),
            "failures": [r.to_dict() for r in self.failures],
            "pending": [r.to_dict() for r in self.pending],
        }
