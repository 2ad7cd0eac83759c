"""
Module Assignment.

Finds documented files that belong to no module, proposes groupings for
them, and applies generator recommendations that clear the confidence
threshold. Recommendations below the threshold are recorded in the
assignment index for review but never applied.
"""

import logging
import posixpath
import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any

from docsync.config.models import DocsyncConfig
from docsync.generator.base import (
    AssignmentRecommendation,
    Generator,
    RecommendationAction,
)
from docsync.modules.graph import (
    DataIntegrityError,
    InsufficientModuleFiles,
    ModuleAlreadyExists,
    ModuleGraph,
    ModuleNotFound,
    slugify,
    validate_slug,
)
from docsync.modules.models import ModuleOverview
from docsync.storage.filestore import normalize_path
from docsync.storage.tiers import TierStore
from docsync.tracking.assignments import AssignmentIndex, AssignmentIndexRecord, PotentialModule
from docsync.tracking.synclog import utcnow

logger = logging.getLogger(__name__)

# Keyword groups used to spot cross-directory concepts
CONCEPTS: dict[str, list[str]] = {
    "authentication": ["auth", "login", "logout", "session", "token"],
    "authorization": ["permission", "role", "policy", "gate", "ability"],
    "billing": ["payment", "invoice", "subscription", "charge", "stripe"],
    "notification": ["notify", "alert", "email", "sms", "push"],
    "reporting": ["report", "analytics", "metrics", "statistics"],
    "integration": ["api", "webhook", "external", "third-party"],
    "caching": ["cache", "redis", "memcached"],
    "search": ["search", "filter", "query", "elastic"],
}

# Directory names too generic to name a module after
GENERIC_DIRECTORY_PARTS = {"app", "resources", "js", "src"}

_WORD_SPLIT = re.compile(r"(?=[A-Z])|_|-")


@dataclass
class ProcessedRecommendations:
    """Recommendations sorted by what will happen to them.

    Every recommendation lands in exactly one list.
    """

    assign_to_existing: list[AssignmentRecommendation] = field(default_factory=list)
    create_new_modules: list[AssignmentRecommendation] = field(default_factory=list)
    low_confidence: list[AssignmentRecommendation] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def applicable(self) -> list[AssignmentRecommendation]:
        """Recommendations that will be applied."""
        return self.assign_to_existing + self.create_new_modules


@dataclass
class AssignmentResult:
    """Outcome of applying recommendations."""

    assigned: dict[str, list[str]] = field(default_factory=dict)
    created: list[str] = field(default_factory=list)
    low_confidence: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def files_assigned(self) -> int:
        """Total files placed into modules."""
        return sum(len(paths) for paths in self.assigned.values())


def common_prefix(paths: list[str]) -> str:
    """Longest common prefix of the basenames of paths."""
    names = [posixpath.basename(p) for p in paths]
    if not names:
        return ""
    return posixpath.commonprefix(names)


def common_words(paths: list[str]) -> list[str]:
    """Words appearing in file basenames, most frequent first."""
    counts: Counter[str] = Counter()
    for path in paths:
        stem = posixpath.splitext(posixpath.basename(path))[0]
        for word in _WORD_SPLIT.split(stem):
            word = word.strip().lower()
            if len(word) > 2:
                counts[word] += 1
    return [word for word, _ in counts.most_common()]


class ModuleAssigner:
    """Maintains the assignment index and applies module assignments."""

    def __init__(
        self,
        graph: ModuleGraph,
        tier_store: TierStore,
        index: AssignmentIndex,
        config: DocsyncConfig,
        generator: Generator | None = None,
    ) -> None:
        """Initialize the assigner.

        Args:
            graph: Module graph
            tier_store: Source of the documented file list
            index: Assignment index to maintain
            config: Root configuration
            generator: Source of recommendations for auto assignment
        """
        self._graph = graph
        self._tiers = tier_store
        self._index = index
        self._generator = generator
        self._threshold = config.modules.confidence_threshold
        self._min_files = config.modules.min_files_per_module
        self._docs_root = config.paths.output.rstrip("/") + "/"

    @property
    def index(self) -> AssignmentIndex:
        """The maintained assignment index."""
        return self._index

    def calculate_confidence(self, files: list[str], directory_based: bool) -> float:
        """Heuristic confidence for a potential module.

        More files, a shared directory and a shared basename prefix all
        raise confidence; the result is capped at 1.0.
        """
        confidence = min(len(files) / 10, 0.5)
        if directory_based:
            confidence += 0.3
        if len(common_prefix(files)) > 3:
            confidence += 0.2
        return round(min(confidence, 1.0), 4)

    def suggest_slug(self, directory: str, files: list[str]) -> str:
        """Slug for a directory grouping."""
        parts = [p for p in directory.split("/") if p and p not in GENERIC_DIRECTORY_PARTS]
        if not parts:
            parts = common_words(files)[:2]
        return slugify("-".join(parts)) or "misc"

    def identify_potential_modules(self, unassigned: list[str]) -> list[PotentialModule]:
        """Group unassigned files by directory and by concept.

        Only groups of at least the configured minimum size are returned,
        highest confidence first.
        """
        potential: list[PotentialModule] = []

        by_directory: dict[str, list[str]] = defaultdict(list)
        for path in unassigned:
            by_directory[posixpath.dirname(path)].append(path)
        for directory, files in sorted(by_directory.items()):
            if len(files) >= self._min_files:
                potential.append(
                    PotentialModule(
                        suggested_slug=self.suggest_slug(directory, files),
                        files=sorted(files),
                        confidence=self.calculate_confidence(files, directory_based=True),
                        reason=f"Files located in same directory: {directory}",
                    )
                )

        for concept, keywords in CONCEPTS.items():
            files = [p for p in unassigned if any(k in p.lower() for k in keywords)]
            if len(files) >= self._min_files:
                potential.append(
                    PotentialModule(
                        suggested_slug=slugify(concept),
                        files=sorted(files),
                        confidence=self.calculate_confidence(files, directory_based=False),
                        reason=f"Files share common concept: {concept}",
                    )
                )

        potential.sort(key=lambda m: m.confidence, reverse=True)
        return potential

    async def analyze(self) -> AssignmentIndexRecord:
        """Rebuild the assignment index from modules and tier artifacts."""
        documented = self._tiers.documented_files()
        module_files = self._graph.module_files()
        excluded = set(self._index.record.do_not_document)
        unassigned_guess = [
            p for p in documented
            if p not in excluded and not any(p in files for files in module_files.values())
        ]
        record = await self._index.rebuild(
            documented,
            module_files,
            potential_modules=self.identify_potential_modules(unassigned_guess),
        )
        logger.info(
            f"Assignment analysis: {sum(len(v) for v in record.assigned.values())} assigned, "
            f"{len(record.unassigned)} unassigned, {len(record.do_not_document)} excluded"
        )
        return record

    def suggest_module_for_file(self, path: str) -> str | None:
        """Suggest an existing module for a single file.

        Prefers the module with the most files in the same directory (at
        least two); otherwise a module whose slug matches a directory name
        on the path.
        """
        if path.startswith(self._docs_root):
            return None

        directory = posixpath.dirname(path)
        best_slug, best_count = None, 0
        for module in self._graph.all_modules():
            count = sum(1 for p in module.all_paths if posixpath.dirname(p) == directory)
            if count > best_count:
                best_slug, best_count = module.module_slug, count
        if best_count >= 2:
            return best_slug

        for part in reversed(directory.split("/")):
            if part and part not in GENERIC_DIRECTORY_PARTS:
                slug = slugify(part)
                if slug and self._graph.exists(slug):
                    return slug
        return None

    def validate_new_module(self, recommendation: AssignmentRecommendation) -> None:
        """Check a create_new_module recommendation.

        Raises:
            DataIntegrityError: If a required field is missing
            InvalidModuleSlug: If the slug is invalid
            ModuleAlreadyExists: If the slug is taken
            InsufficientModuleFiles: If there are too few files
        """
        missing = [
            name
            for name in ("module_name", "module_slug", "description")
            if not getattr(recommendation, name)
        ]
        if not recommendation.files:
            missing.append("files")
        if missing:
            raise DataIntegrityError(f"New module missing fields: {', '.join(missing)}")
        validate_slug(recommendation.module_slug)
        if self._graph.exists(recommendation.module_slug):
            raise ModuleAlreadyExists(recommendation.module_slug)
        if len(recommendation.files) < self._min_files:
            raise InsufficientModuleFiles(len(recommendation.files), self._min_files)

    def process_recommendations(
        self,
        recommendations: list[AssignmentRecommendation],
        threshold: float | None = None,
    ) -> ProcessedRecommendations:
        """Sort recommendations into apply, low-confidence and error lists.

        Args:
            recommendations: Generator output
            threshold: Confidence threshold (defaults to configuration)
        """
        threshold = self._threshold if threshold is None else threshold
        processed = ProcessedRecommendations()

        for rec in recommendations:
            if rec.confidence < threshold:
                processed.low_confidence.append(rec)
                continue
            try:
                if rec.action is RecommendationAction.ASSIGN_TO_EXISTING:
                    if not rec.module or not self._graph.exists(rec.module):
                        raise ModuleNotFound(rec.module or "")
                    processed.assign_to_existing.append(rec)
                else:
                    self.validate_new_module(rec)
                    processed.create_new_modules.append(rec)
            except DataIntegrityError as e:
                processed.errors.append({"recommendation": rec.model_dump(mode="json"), "error": str(e)})

        return processed

    async def apply(self, processed: ProcessedRecommendations) -> AssignmentResult:
        """Apply accepted recommendations.

        Only files currently unassigned are moved; each file is assigned at
        most once. Files join their module as undocumented so the next
        module regeneration covers them.
        """
        result = AssignmentResult(low_confidence=len(processed.low_confidence))
        available = set(self._index.record.unassigned)

        def take(files: list[str]) -> list[str]:
            chosen = [f for f in dict.fromkeys(files) if f in available]
            skipped = [f for f in files if f not in chosen]
            if skipped:
                result.errors.append(f"Not unassigned, skipped: {', '.join(sorted(set(skipped)))}")
            available.difference_update(chosen)
            return chosen

        for rec in processed.assign_to_existing:
            files = take(rec.files)
            if not files:
                continue
            try:
                added = await self._graph.add_files(rec.module, files, documented=False)
            except DataIntegrityError as e:
                result.errors.append(str(e))
                available.update(files)
                continue
            await self._index.assign(rec.module, added)
            result.assigned.setdefault(rec.module, []).extend(added)

        for rec in processed.create_new_modules:
            files = take(rec.files)
            try:
                if len(files) < self._min_files:
                    raise InsufficientModuleFiles(len(files), self._min_files)
                await self._graph.create(rec.module_slug, rec.module_name, rec.description or "", files)
            except DataIntegrityError as e:
                result.errors.append(str(e))
                available.update(files)
                continue
            await self._index.assign(rec.module_slug, files)
            result.created.append(rec.module_slug)
            result.assigned.setdefault(rec.module_slug, []).extend(files)

        low = [rec.model_dump(mode="json") for rec in processed.low_confidence]

        def record(index_record: AssignmentIndexRecord) -> None:
            index_record.low_confidence = low
            if processed.applicable:
                index_record.last_ai_assignment = utcnow()

        await self._index.update(record)
        for error in result.errors:
            logger.warning(f"Assignment: {error}")
        return result

    async def add_do_not_document(self, paths: list[str]) -> None:
        """Permanently exclude paths from assignment."""
        paths = [normalize_path(p) for p in paths]
        await self._index.exclude(paths)
        logger.info(f"Excluded {len(paths)} file(s) from documentation")

    async def remove_do_not_document(self, paths: list[str]) -> None:
        """Lift an exclusion; documented paths become unassigned again."""
        await self._index.include([normalize_path(p) for p in paths], self._tiers.documented_files())

    def module_overviews(self) -> list[ModuleOverview]:
        """Short descriptions of every module for the generator."""
        return [
            ModuleOverview(
                slug=m.module_slug,
                name=m.module_name,
                summary=m.module_summary,
                file_count=len(m.all_paths),
            )
            for m in self._graph.all_modules()
        ]

    async def recommend(self, threshold: float | None = None) -> ProcessedRecommendations:
        """Analyze, then ask the generator for recommendations and sort them.

        Nothing is applied.

        Raises:
            ProviderError: If the generator call fails
            RuntimeError: If no generator was configured
        """
        if self._generator is None:
            raise RuntimeError("Recommendations require a generator")

        record = await self.analyze()
        if not record.unassigned:
            return ProcessedRecommendations()

        recommendations = await self._generator.recommend_assignments(
            list(record.unassigned), self.module_overviews()
        )
        return self.process_recommendations(recommendations, threshold)

    async def auto_assign(self, threshold: float | None = None) -> AssignmentResult:
        """Analyze, request recommendations, apply those above the threshold.

        Raises:
            ProviderError: If the generator call fails
            RuntimeError: If no generator was configured
        """
        processed = await self.recommend(threshold)
        result = await self.apply(processed)
        result.errors.extend(e["error"] for e in processed.errors)
        await self.analyze()
        logger.info(
            f"Auto assignment: {result.files_assigned} file(s) assigned, "
            f"{len(result.created)} module(s) created, {result.low_confidence} low confidence"
        )
        return result
