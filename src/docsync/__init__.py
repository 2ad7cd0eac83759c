"""
docsync: Incremental documentation synchronization.

Keeps tiered, generated documentation artifacts in step with a source tree
as it evolves under git. A sync run detects which source files changed
between two revisions, regenerates or updates their micro/standard/expansive
artifacts, keeps module groupings and their narrative documents current, and
advances a per-file revision log only for work that was durably written.

Example:
    from docsync import build_orchestrator
    from docsync.config import load_config_from_env

    config = load_config_from_env()
    orchestrator = build_orchestrator(config)
    report = await orchestrator.run()
"""

from docsync.orchestrator import SyncOrchestrator, SyncReport, build_orchestrator
from docsync.version import __version__

__all__ = [
    "__version__",
    "SyncOrchestrator",
    "SyncReport",
    "build_orchestrator",
]
