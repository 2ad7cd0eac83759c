"""
Sync Orchestrator.

Drives a synchronization run through its phases:

1. Detect - classify changes between the baseline and HEAD
2. Generate new - full tier generation for added files
3. Update changed - diff-driven tier updates, module invalidation
4. Delete - remove artifacts, log entries and module membership
5. Reassign - rebuild the assignment index, apply recommendations
6. Regenerate modules - rewrite narratives that are missing files, then
   refresh the module index
7. Advance - record HEAD as the new baseline

generate_all() reaches the same phases from a scan of the tree at HEAD
instead of a diff.

Phases run strictly in sequence. Inside a phase, units run concurrently
through the UnitRunner and each unit's failure stays local to it.
"""

import asyncio
import logging
from collections.abc import Callable

from docsync.classifier import ChangeClassifier, ChangeSet
from docsync.config.models import DocsyncConfig, Tier
from docsync.generator.base import FileDoc, Generator, TierContent, TierUpdate
from docsync.generator.validation import warn_if_shrunk
from docsync.modules.assignment import AssignmentResult, ModuleAssigner
from docsync.modules.graph import ModuleGraph, compose_document
from docsync.orchestrator.state import (
    SyncPhase,
    SyncReport,
    SyncState,
    UnitKind,
    UnitOutcome,
)
from docsync.orchestrator.units import UnitRunner, UnitWork
from docsync.storage.frontmatter import extract_summary
from docsync.storage.tiers import TierStore, WrittenSet
from docsync.tracking.synclog import SyncLog, utcnow
from docsync.utils.locks import KeyedLock
from docsync.vcs.git import RevisionError
from docsync.vcs.oracle import RevisionOracle

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a run cannot start or its change detection fails."""

    pass


# Type alias for progress callback
ProgressCallback = Callable[[SyncState], None]


class SyncOrchestrator:
    """Runs incremental documentation synchronization.

    Usage:
        orchestrator = build_orchestrator(config)
        report = await orchestrator.run()
        if not report.succeeded:
            ...
    """

    def __init__(
        self,
        config: DocsyncConfig,
        oracle: RevisionOracle,
        tier_store: TierStore,
        synclog: SyncLog,
        graph: ModuleGraph,
        classifier: ChangeClassifier,
        assigner: ModuleAssigner,
        generator: Generator,
        runner: UnitRunner | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Root configuration
            oracle: Revision queries
            tier_store: Tier artifact store
            synclog: Per-file revision tracking
            graph: Module records
            classifier: Change classifier
            assigner: Module assignment
            generator: Content generator
            runner: Unit scheduler (built from config.sync if omitted)
        """
        self._config = config
        self._oracle = oracle
        self._tiers = tier_store
        self._synclog = synclog
        self._graph = graph
        self._classifier = classifier
        self._assigner = assigner
        self._generator = generator
        self._runner = runner or UnitRunner(config.sync)

        self._path_locks = KeyedLock()
        self._module_locks = KeyedLock()
        self._state = SyncState()
        self._progress_callbacks: list[ProgressCallback] = []

    @property
    def state(self) -> SyncState:
        """Current run state."""
        return self._state

    @property
    def synclog(self) -> SyncLog:
        return self._synclog

    @property
    def graph(self) -> ModuleGraph:
        return self._graph

    @property
    def assigner(self) -> ModuleAssigner:
        return self._assigner

    @property
    def classifier(self) -> ChangeClassifier:
        return self._classifier

    @property
    def oracle(self) -> RevisionOracle:
        return self._oracle

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a progress callback."""
        self._progress_callbacks.append(callback)

    def _notify_progress(self) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")

    def _set_phase(self, phase: SyncPhase, units: int = 0) -> None:
        self._state.phase = phase
        self._state.units_total = units
        self._state.units_done = 0
        logger.debug(f"Phase {phase.value} ({units} unit(s))")
        self._notify_progress()

    async def close(self) -> None:
        """Release generator resources, if it holds any."""
        close = getattr(self._generator, "close", None)
        if close is not None:
            await close()

    async def resolve_range(self, from_revision: str | None = None) -> tuple[str, str]:
        """Resolve the base and HEAD revisions of a run.

        Raises:
            SyncError: If there is no base revision or resolution fails
        """
        base = from_revision or self._synclog.baseline
        if base is None:
            raise SyncError(
                "No previous sync recorded; pass a starting revision (--since)"
            )
        try:
            head = await self._oracle.resolve_head()
            base = await self._oracle.resolve(base)
        except RevisionError as e:
            raise SyncError(f"Cannot resolve revisions: {e}") from e
        return base, head

    async def detect(self, from_revision: str | None = None) -> ChangeSet:
        """Classify changes since the baseline without writing anything.

        Raises:
            SyncError: If revisions cannot be resolved or diffed
        """
        base, head = await self.resolve_range(from_revision)
        try:
            return await self._classifier.classify(base, head)
        except RevisionError as e:
            raise SyncError(f"Change detection failed: {e}") from e

    async def run(self, from_revision: str | None = None, dry_run: bool = False) -> SyncReport:
        """Execute a sync run.

        Args:
            from_revision: Base revision; defaults to the recorded baseline
            dry_run: Stop after change detection

        Returns:
            SyncReport with per-file and per-module counts

        Raises:
            SyncError: If the run cannot start or change detection fails
        """
        self._state = SyncState(start_time=utcnow())
        try:
            self._set_phase(SyncPhase.DETECT)
            base, head = await self.resolve_range(from_revision)
            self._state.from_revision, self._state.head = base, head
            report = SyncReport(from_revision=base, to_revision=head, dry_run=dry_run)

            try:
                change_set = await self._classifier.classify(base, head)
            except RevisionError as e:
                raise SyncError(f"Change detection failed: {e}") from e
            report.change_set = change_set

            if dry_run or change_set.is_empty:
                if change_set.is_empty:
                    logger.info(f"No documentable changes between {base[:8]} and {head[:8]}")
                self._set_phase(SyncPhase.COMPLETED)
                return report

            await self._run_units(
                SyncPhase.GENERATE_NEW,
                report,
                UnitKind.FILE,
                {path: self._new_file_work(path, head) for path in change_set.new},
            )
            await self._run_units(
                SyncPhase.UPDATE_CHANGED,
                report,
                UnitKind.FILE,
                {path: self._changed_file_work(path, base, head) for path in change_set.changed},
            )
            await self._run_units(
                SyncPhase.DELETE,
                report,
                UnitKind.FILE,
                {path: self._deleted_file_work(path) for path in change_set.deleted},
            )

            await self._assign_and_regenerate(report, head)

            self._set_phase(SyncPhase.ADVANCE)
            if report.can_advance:
                await self._synclog.set_baseline(head)
                report.baseline_advanced = True
            else:
                blocking = [r.key for r in report.results if r.blocks_advance]
                logger.warning(
                    f"Baseline kept at {base[:8]}: {len(blocking)} unit(s) pending or failed "
                    f"({', '.join(blocking[:5])})"
                )

            self._set_phase(SyncPhase.COMPLETED)
            logger.info(
                f"Sync {base[:8]}..{head[:8]} finished: files {report.files.to_dict()}, "
                f"modules {report.modules.to_dict()}"
            )
            return report

        except Exception as e:
            self._state.errors.append(str(e))
            self._set_phase(SyncPhase.FAILED)
            raise

    async def generate_all(self, roots: list[str] | None = None, dry_run: bool = False) -> SyncReport:
        """Document every source file at HEAD that lacks current artifacts.

        Scans the tree at HEAD instead of diffing, so files that predate the
        baseline or any sync at all are covered. A file is skipped when all
        three tiers exist and its log entry matches the last revision that
        touched it. Assignment and module regeneration follow as in run().
        HEAD becomes the baseline only if none is recorded yet.

        Args:
            roots: Limit the scan to these directories
            dry_run: Report what would be generated, write nothing

        Raises:
            SyncError: If HEAD cannot be resolved or the tree cannot be listed
        """
        self._state = SyncState(start_time=utcnow())
        try:
            self._set_phase(SyncPhase.DETECT)
            try:
                head = await self._oracle.resolve_head()
                paths = await self._oracle.documentable_files(head, roots)
                missing = [p for p in paths if await self._needs_generation(p)]
            except RevisionError as e:
                raise SyncError(f"Source scan failed: {e}") from e

            self._state.head = head
            baseline = self._synclog.baseline
            report = SyncReport(from_revision=baseline, to_revision=head, dry_run=dry_run)
            report.change_set = ChangeSet(
                from_revision=baseline or "",
                to_revision=head,
                new=missing,
                skipped=sorted(set(paths) - set(missing)),
            )
            logger.info(f"Scan found {len(missing)} of {len(paths)} file(s) needing documentation")

            if dry_run:
                self._set_phase(SyncPhase.COMPLETED)
                return report

            if missing:
                await self._run_units(
                    SyncPhase.GENERATE_NEW,
                    report,
                    UnitKind.FILE,
                    {path: self._new_file_work(path, head) for path in missing},
                )
                await self._assign_and_regenerate(report, head)

            self._set_phase(SyncPhase.ADVANCE)
            if baseline is None and report.can_advance:
                await self._synclog.set_baseline(head)
                report.baseline_advanced = True

            self._set_phase(SyncPhase.COMPLETED)
            logger.info(
                f"Full generation at {head[:8]} finished: files {report.files.to_dict()}, "
                f"modules {report.modules.to_dict()}"
            )
            return report

        except Exception as e:
            self._state.errors.append(str(e))
            self._set_phase(SyncPhase.FAILED)
            raise

    async def _needs_generation(self, path: str) -> bool:
        source_revision = await self._oracle.last_revision_touching(path)
        return not (self._tiers.exists_all(path) and not self._synclog.needs_sync(path, source_revision))

    async def _assign_and_regenerate(self, report: SyncReport, head: str) -> None:
        """Reassign, regenerate affected module narratives, refresh the index."""
        self._set_phase(SyncPhase.REASSIGN, 1)
        await self._reassign(report)

        await self._run_units(
            SyncPhase.REGENERATE_MODULES,
            report,
            UnitKind.MODULE,
            {
                slug: self._module_work(slug, head)
                for slug in self._graph.modules_with_undocumented_files()
            },
        )
        if report.modules.succeeded:
            report.add(await self._runner.run("module-index", UnitKind.INDEX, self._index_work))

    async def _index_work(self) -> UnitOutcome:
        written = self._graph.write_index()
        return UnitOutcome.SUCCEEDED if written else UnitOutcome.SKIPPED

    async def _run_units(
        self,
        phase: SyncPhase,
        report: SyncReport,
        kind: UnitKind,
        units: dict[str, UnitWork],
    ) -> None:
        """Run every unit of a phase and wait for all of them."""
        self._set_phase(phase, len(units))
        if not units:
            return

        async def run_one(key: str, work: UnitWork) -> None:
            result = await self._runner.run(key, kind, work)
            report.add(result)
            self._state.units_done += 1
            self._notify_progress()

        await asyncio.gather(*(run_one(key, work) for key, work in units.items()))

    # File units

    def _new_file_work(self, path: str, head: str) -> UnitWork:
        async def work() -> UnitOutcome:
            async with self._path_locks.hold(path):
                source_revision = await self._oracle.last_revision_touching(path)
                if self._tiers.exists_all(path) and not self._synclog.needs_sync(path, source_revision):
                    logger.debug(f"{path} already documented at {source_revision}")
                    return UnitOutcome.SKIPPED
                return await self._generate(path, head, source_revision, owner=None)

        return work

    def _changed_file_work(self, path: str, base: str, head: str) -> UnitWork:
        async def work() -> UnitOutcome:
            async with self._path_locks.hold(path):
                source_revision = await self._oracle.last_revision_touching(path)
                owner = self._graph.find_owner(path)

                diff_text = await self._oracle.file_diff(path, base, head)
                if not diff_text or not self._tiers.exists_all(path):
                    logger.info(f"{path}: no comparable documentation, generating from scratch")
                    return await self._generate(path, head, source_revision, owner=owner)

                source = await self._oracle.content_at(path, head)
                if source is None:
                    logger.warning(f"{path} does not exist at {head[:8]}, skipping")
                    return UnitOutcome.SKIPPED

                existing = self._tiers.read_all(path)
                update: TierUpdate = await self._generator.update_tiers(
                    source, diff_text, existing, path, head
                )
                for tier, text in update.items():
                    warn_if_shrunk(path, tier, existing.get(tier), text)
                await self._commit(path, update, head, source_revision, owner)
                return UnitOutcome.SUCCEEDED

        return work

    def _deleted_file_work(self, path: str) -> UnitWork:
        async def work() -> UnitOutcome:
            async with self._path_locks.hold(path):
                removed = self._tiers.delete(path)
                await self._synclog.remove(path)
                for slug in self._graph.owners(path):
                    await self._graph.remove_files(slug, [path])
                await self._assigner.index.forget([path])
                logger.info(f"Removed documentation for deleted {path} ({len(removed)} tier(s))")
                return UnitOutcome.SUCCEEDED

        return work

    async def _generate(
        self,
        path: str,
        head: str,
        source_revision: str | None,
        owner: str | None,
    ) -> UnitOutcome:
        source = await self._oracle.content_at(path, head)
        if source is None:
            logger.warning(f"{path} does not exist at {head[:8]}, skipping")
            return UnitOutcome.SKIPPED

        tiers: TierContent = await self._generator.generate_tiers(source, path, head)
        await self._commit(path, tiers, head, source_revision, owner)
        return UnitOutcome.SUCCEEDED

    async def _commit(
        self,
        path: str,
        contents: TierUpdate,
        head: str,
        source_revision: str | None,
        owner: str | None,
    ) -> None:
        """Write tiers, invalidate the owning module, then advance the log.

        Any failure or cancellation after the tier write restores the
        previous artifacts, so the log never points past unwritten content.
        """
        written: WrittenSet | None = None
        try:
            written = self._tiers.write_atomic(path, contents, revision=head)
            if owner is not None:
                await self._graph.mark_undocumented(owner, path)
            await self._synclog.set(path, head, source_revision=source_revision)
        except BaseException:
            if written is not None:
                self._tiers.rollback(written)
            raise
        logger.info(
            f"Synced {path}: wrote {[t.value for t in written.written]}, "
            f"unchanged {[t.value for t in written.skipped]}"
        )

    # Assignment

    async def _reassign(self, report: SyncReport) -> None:
        holder: list[AssignmentResult] = []

        async def work() -> UnitOutcome:
            if self._config.modules.auto_assign:
                holder.append(await self._assigner.auto_assign())
            else:
                await self._assigner.analyze()
            return UnitOutcome.SUCCEEDED

        result = await self._runner.run("assignment", UnitKind.ASSIGNMENT, work)
        report.add(result)
        if holder:
            report.assignment = holder[-1]

    # Module units

    def _module_work(self, slug: str, head: str) -> UnitWork:
        async def work() -> UnitOutcome:
            async with self._module_locks.hold(slug):
                return await self._regenerate_module(slug, head)

        return work

    async def _regenerate_module(self, slug: str, head: str) -> UnitOutcome:
        module = self._graph.require(slug)
        docs = []
        for path in module.undocumented_files:
            text = self._tiers.read(path, Tier.EXPANSIVE) or self._tiers.read(path, Tier.STANDARD)
            if text:
                docs.append(FileDoc(path=path, doc=text))
            else:
                logger.debug(f"Module {slug}: {path} has no documentation yet")
        if not docs:
            return UnitOutcome.SKIPPED

        previous = self._graph.read_document(slug)
        committed = False
        try:
            body = await self._generator.regenerate_module_document(
                module.module_name, previous or "", docs
            )
            self._graph.write_document(slug, compose_document(module, body))
            await self._graph.mark_documented(slug, [d.path for d in docs], revision=head)
            committed = True
        except BaseException:
            if not committed:
                self._graph.restore_document(slug, previous)
            raise

        summary = extract_summary(body)
        if summary:
            await self._graph.set_summary(slug, summary)
        await self._synclog.set_module(slug, head)
        logger.info(f"Regenerated module {slug} covering {len(docs)} new file(s)")
        return UnitOutcome.SUCCEEDED
