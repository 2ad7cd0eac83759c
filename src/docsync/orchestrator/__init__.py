"""
Orchestrator Module.

Runs synchronization: phase sequencing, unit scheduling with retries and
requeueing, and the run report.
"""

from docsync.orchestrator.factory import build_orchestrator
from docsync.orchestrator.orchestrator import (
    ProgressCallback,
    SyncError,
    SyncOrchestrator,
)
from docsync.orchestrator.state import (
    OutcomeCounts,
    SyncPhase,
    SyncReport,
    SyncState,
    UnitKind,
    UnitOutcome,
    UnitResult,
)
from docsync.orchestrator.units import TERMINAL_ERRORS, UnitRunner

__all__ = [
    # Orchestrator
    "SyncOrchestrator",
    "SyncError",
    "ProgressCallback",
    "build_orchestrator",
    # State
    "SyncPhase",
    "SyncState",
    "SyncReport",
    "OutcomeCounts",
    "UnitKind",
    "UnitOutcome",
    "UnitResult",
    # Scheduling
    "UnitRunner",
    "TERMINAL_ERRORS",
]
