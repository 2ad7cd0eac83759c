"""
Tier Artifact Store.

Maps a source file to its micro, standard and expansive documentation
artifacts and writes them as one unit: either every supplied tier lands or,
after a failure, the artifacts are back to what they were before the call.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from docsync.config.models import ALL_TIERS, DocsyncConfig, Tier
from docsync.storage.filestore import FileStore, FilesystemError, normalize_path
from docsync.storage.frontmatter import FrontMatterError, parse, serialize

logger = logging.getLogger(__name__)

# Header key holding the source revision of an expansive artifact
REVISION_KEY = "commit_sha"

# Probe order when resolving the richest available tier
TIER_PROBE_ORDER: tuple[Tier, ...] = (Tier.EXPANSIVE, Tier.STANDARD, Tier.MICRO)

UNKNOWN_TIER = "unknown"


def set_revision_marker(text: str, revision: str) -> str:
    """Return text with its header revision marker set to revision.

    Raises:
        FrontMatterError: If the existing header is malformed
    """
    document = parse(text)
    document.set(REVISION_KEY, revision)
    return serialize(document)


def get_revision_marker(text: str) -> str | None:
    """Read the revision marker, or None if absent or unreadable."""
    try:
        return parse(text).get(REVISION_KEY)
    except FrontMatterError:
        return None


@dataclass
class WrittenSet:
    """Outcome of a multi-tier write.

    Attributes:
        path: Source path the artifacts belong to
        written: Tiers whose artifacts were written, in write order
        skipped: Tiers whose new content matched the existing artifact
        previous: Content of each written tier before the write (None if new)
    """

    path: str
    written: list[Tier] = field(default_factory=list)
    skipped: list[Tier] = field(default_factory=list)
    previous: dict[Tier, str | None] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        """Whether any artifact changed."""
        return bool(self.written)


class TierStore:
    """Owns the tier artifact files.

    Artifact layout: `{output}/{tier_dir}/{source_path_without_ext}.md`.
    """

    def __init__(self, store: FileStore, config: DocsyncConfig) -> None:
        """Initialize the store.

        Args:
            store: File store rooted at the project root
            config: Root configuration
        """
        self._store = store
        self._output = config.paths.output.rstrip("/")
        self._tier_dirs = dict(config.tiers)
        self._file_types = list(config.file_types)

    def artifact_path(self, path: str, tier: Tier) -> str:
        """Location of a tier artifact for a source path."""
        source = PurePosixPath(normalize_path(path))
        stem = source.with_suffix("").as_posix()
        return f"{self._output}/{self._tier_dirs[tier]}/{stem}.md"

    def exists(self, path: str, tier: Tier) -> bool:
        """Check whether a tier artifact exists."""
        return self._store.exists(self.artifact_path(path, tier))

    def exists_all(self, path: str, tiers: Iterable[Tier] = ALL_TIERS) -> bool:
        """Check that every listed tier artifact exists."""
        return all(self.exists(path, tier) for tier in tiers)

    def read(self, path: str, tier: Tier) -> str | None:
        """Read one tier artifact, or None if it does not exist."""
        artifact = self.artifact_path(path, tier)
        if not self._store.exists(artifact):
            return None
        return self._store.read(artifact)

    def read_all(self, path: str) -> dict[Tier, str]:
        """Read every existing tier artifact for a source path."""
        result: dict[Tier, str] = {}
        for tier in ALL_TIERS:
            content = self.read(path, tier)
            if content is not None:
                result[tier] = content
        return result

    def resolve_tier(self, path: str) -> str:
        """Name of the richest existing tier, or 'unknown'."""
        for tier in TIER_PROBE_ORDER:
            if self.exists(path, tier):
                return tier.value
        return UNKNOWN_TIER

    def write_atomic(
        self,
        path: str,
        contents: Mapping[Tier, str | None],
        revision: str | None = None,
    ) -> WrittenSet:
        """Write the supplied tiers for a source path as one unit.

        Tiers mapped to None are left alone. Content identical to the
        existing artifact is skipped. When revision is given, the expansive
        artifact's revision marker is set to it, whether the expansive
        content is new or the existing artifact is kept.

        Args:
            path: Source path
            contents: New content per tier
            revision: Source revision the content reflects

        Returns:
            WrittenSet describing what changed

        Raises:
            FilesystemError: If any write fails; artifacts written during
                this call are restored first
            FrontMatterError: If the expansive header cannot be updated
        """
        result = WrittenSet(path=normalize_path(path))
        planned: list[tuple[Tier, str, str | None]] = []

        for tier in ALL_TIERS:
            new = contents.get(tier)
            existing = self.read(path, tier)
            if tier is Tier.EXPANSIVE and revision:
                base = new if new is not None else existing
                if base is not None:
                    new = set_revision_marker(base, revision)
            if new is None:
                continue
            if new == existing:
                result.skipped.append(tier)
                continue
            planned.append((tier, new, existing))

        try:
            for tier, new, existing in planned:
                self._store.write(self.artifact_path(path, tier), new)
                result.written.append(tier)
                result.previous[tier] = existing
        except FilesystemError:
            logger.warning(
                f"Tier write failed for {path} after {len(result.written)} tier(s); rolling back"
            )
            self.rollback(result)
            raise

        return result

    def rollback(self, written: WrittenSet) -> None:
        """Restore every artifact recorded in a WrittenSet.

        Artifacts that did not exist before are deleted; others get their
        previous content back. Restore failures are logged, not raised, so
        the error that triggered the rollback propagates.
        """
        for tier in reversed(written.written):
            artifact = self.artifact_path(written.path, tier)
            previous = written.previous.get(tier)
            try:
                if previous is None:
                    self._store.delete(artifact)
                else:
                    self._store.write(artifact, previous)
            except FilesystemError as e:
                logger.error(f"Rollback of {artifact} failed: {e}")
        written.written.clear()
        written.previous.clear()

    def delete(self, path: str) -> list[Tier]:
        """Delete all tier artifacts for a source path.

        Returns:
            Tiers that existed and were removed
        """
        removed = []
        for tier in ALL_TIERS:
            if self._store.delete(self.artifact_path(path, tier)):
                removed.append(tier)
        return removed

    def documented_files(self) -> list[str]:
        """List every source path that has a micro-tier artifact.

        Artifacts are mapped back to sources by probing the allowlisted
        extensions against the file store; artifacts whose source no longer
        exists are not reported.
        """
        prefix = f"{self._output}/{self._tier_dirs[Tier.MICRO]}"
        documented = []
        for artifact in self._store.list(prefix):
            if not artifact.endswith(".md"):
                continue
            stem = artifact[len(prefix) + 1 : -len(".md")]
            for ext in self._file_types:
                candidate = f"{stem}.{ext}"
                if self._store.exists(candidate):
                    documented.append(candidate)
                    break
        return sorted(documented)
