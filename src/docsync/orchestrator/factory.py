"""
Orchestrator wiring.

Builds every component from one DocsyncConfig. Collaborators can be
substituted, which is how tests run the engine against in-memory stores
and scripted generators.
"""

from collections.abc import Awaitable, Callable

from docsync.classifier import ChangeClassifier
from docsync.config.models import DocsyncConfig
from docsync.generator.base import Generator
from docsync.generator.llm import LLMGenerator
from docsync.modules.assignment import ModuleAssigner
from docsync.modules.graph import ModuleGraph
from docsync.orchestrator.orchestrator import SyncOrchestrator
from docsync.orchestrator.units import UnitRunner
from docsync.storage.filestore import FileStore, LocalFileStore
from docsync.storage.tiers import TierStore
from docsync.tracking.assignments import AssignmentIndex
from docsync.tracking.synclog import SyncLog
from docsync.utils.llm_client import AsyncLLMClient
from docsync.vcs.git import GitVersionControl, VersionControl
from docsync.vcs.oracle import RevisionOracle


def build_orchestrator(
    config: DocsyncConfig,
    generator: Generator | None = None,
    vcs: VersionControl | None = None,
    store: FileStore | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> SyncOrchestrator:
    """Assemble a SyncOrchestrator.

    Args:
        config: Root configuration
        generator: Content generator (LLM-backed by default)
        vcs: Version control (git in the project root by default)
        store: File store (local filesystem at the project root by default)
        sleep: Requeue sleep override

    Returns:
        Ready-to-run orchestrator
    """
    store = store or LocalFileStore(config.root_path)
    vcs = vcs or GitVersionControl(config.root_path)
    if generator is None:
        generator = LLMGenerator(AsyncLLMClient.from_config(config.generator), config.generator)

    oracle = RevisionOracle(vcs, config)
    tier_store = TierStore(store, config)
    synclog = SyncLog(store, config)
    graph = ModuleGraph(store, tier_store, config)
    index = AssignmentIndex(store, config)
    assigner = ModuleAssigner(graph, tier_store, index, config, generator=generator)
    classifier = ChangeClassifier(oracle, synclog, graph)
    runner = UnitRunner(config.sync, sleep=sleep) if sleep else UnitRunner(config.sync)

    return SyncOrchestrator(
        config=config,
        oracle=oracle,
        tier_store=tier_store,
        synclog=synclog,
        graph=graph,
        classifier=classifier,
        assigner=assigner,
        generator=generator,
        runner=runner,
    )
