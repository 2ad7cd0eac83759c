"""
Module Graph.

Persisted set of modules: one JSON metadata record and one narrative
document per slug, plus a markdown index listing every module. All
mutations go through a single asyncio lock and are validated before
anything is written.

Membership policy: a path belongs to at most one module. Adding a path
that another module already lists is rejected with MembershipConflict.
Records edited by hand can still overlap; `find_owner` then picks the
first slug in sorted order and the assignment index reports the overlap.
"""

import asyncio
import json
import logging
import posixpath
import re
from collections.abc import Iterable

from pydantic import ValidationError

from docsync.config.models import DocsyncConfig
from docsync.modules.models import Module, ModuleFile
from docsync.storage.filestore import FilesystemError, FileStore, normalize_path
from docsync.storage.frontmatter import parse, serialize
from docsync.storage.tiers import TierStore
from docsync.tracking.synclog import utcnow

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

PLACEHOLDER_BODY = "# {name} Module\n\n## Overview\n\n{description}\n\n## How This Module Works\n\n[To be documented]\n"

INDEX_SUMMARY_LIMIT = 150


class DataIntegrityError(Exception):
    """Raised when an operation would violate module bookkeeping rules.

    Always raised before any mutation.
    """

    pass


class ModuleNotFound(DataIntegrityError):
    """Raised when a slug has no module record."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Module not found: {slug}")
        self.slug = slug


class ModuleAlreadyExists(DataIntegrityError):
    """Raised when creating a module whose slug is taken."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Module already exists: {slug}")
        self.slug = slug


class InvalidModuleSlug(DataIntegrityError):
    """Raised for a slug outside [a-z0-9-]."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Invalid module slug {slug!r}: use lowercase letters, digits and dashes")
        self.slug = slug


class InsufficientModuleFiles(DataIntegrityError):
    """Raised when a new module has fewer files than required."""

    def __init__(self, count: int, minimum: int) -> None:
        super().__init__(f"Module needs at least {minimum} files, got {count}")
        self.count = count
        self.minimum = minimum


class MembershipConflict(DataIntegrityError):
    """Raised when paths already belong to another module."""

    def __init__(self, conflicts: dict[str, str]) -> None:
        listed = ", ".join(f"{path} ({slug})" for path, slug in sorted(conflicts.items()))
        super().__init__(f"Files already belong to another module: {listed}")
        self.conflicts = conflicts


def validate_slug(slug: str) -> str:
    """Return slug if valid.

    Raises:
        InvalidModuleSlug: If the slug has other characters
    """
    if not SLUG_PATTERN.match(slug or ""):
        raise InvalidModuleSlug(slug)
    return slug


def slugify(text: str) -> str:
    """Convert arbitrary text to a slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return re.sub(r"-{2,}", "-", slug)


class ModuleGraph:
    """Owns module records and narrative documents."""

    def __init__(self, store: FileStore, tier_store: TierStore, config: DocsyncConfig) -> None:
        """Initialize the graph.

        Args:
            store: File store rooted at the project root
            tier_store: Used to resolve a documented file's tier
            config: Root configuration
        """
        self._store = store
        self._tiers = tier_store
        self._metadata_dir = config.paths.module_metadata.rstrip("/")
        self._content_dir = config.paths.module_content.rstrip("/")
        self._lock = asyncio.Lock()

    def metadata_path(self, slug: str) -> str:
        """Location of a module's metadata record."""
        return f"{self._metadata_dir}/{slug}.json"

    def document_path(self, slug: str) -> str:
        """Location of a module's narrative document."""
        return f"{self._content_dir}/{slug}.md"

    def exists(self, slug: str) -> bool:
        """Check whether a module record exists."""
        return self._store.exists(self.metadata_path(slug))

    def load(self, slug: str) -> Module | None:
        """Load a module, or None if absent.

        Raises:
            FilesystemError: If the record is unreadable or invalid
        """
        path = self.metadata_path(slug)
        if not self._store.exists(path):
            return None
        try:
            return Module.model_validate(json.loads(self._store.read(path)))
        except (json.JSONDecodeError, ValidationError) as e:
            raise FilesystemError(f"Corrupt module record {path}: {e}", path=path) from e

    def require(self, slug: str) -> Module:
        """Load a module.

        Raises:
            ModuleNotFound: If absent
        """
        module = self.load(slug)
        if module is None:
            raise ModuleNotFound(slug)
        return module

    def all_slugs(self) -> list[str]:
        """Every module slug, sorted."""
        slugs = []
        for path in self._store.list(self._metadata_dir):
            name = path.rsplit("/", 1)[-1]
            if name.endswith(".json"):
                slugs.append(name[: -len(".json")])
        return sorted(slugs)

    def all_modules(self) -> list[Module]:
        """Every module, in slug order."""
        return [m for m in (self.load(slug) for slug in self.all_slugs()) if m is not None]

    def module_files(self) -> dict[str, list[str]]:
        """Slug to every path the module lists."""
        return {m.module_slug: m.all_paths for m in self.all_modules()}

    def owners(self, path: str) -> list[str]:
        """Every slug listing a path, sorted."""
        path = normalize_path(path)
        return [m.module_slug for m in self.all_modules() if m.contains(path)]

    def find_owner(self, path: str) -> str | None:
        """Owning module of a path; first slug in sorted order wins."""
        owners = self.owners(path)
        return owners[0] if owners else None

    def modules_with_undocumented_files(self) -> list[str]:
        """Slugs whose narrative is missing some of their files."""
        return [m.module_slug for m in self.all_modules() if m.undocumented_files]

    def _write(self, module: Module) -> None:
        duplicates = module.duplicate_paths()
        if duplicates:
            raise DataIntegrityError(
                f"Module {module.module_slug} lists files twice: {', '.join(duplicates)}"
            )
        module.recompute_statistics()
        module.last_updated = utcnow()
        payload = json.dumps(module.model_dump(mode="json"), indent=2)
        self._store.write(self.metadata_path(module.module_slug), payload + "\n")

    async def save(self, module: Module) -> Module:
        """Persist a module, recomputing statistics and last_updated.

        Raises:
            InvalidModuleSlug: If the slug is invalid
            DataIntegrityError: If a path appears twice
        """
        validate_slug(module.module_slug)
        async with self._lock:
            self._write(module)
        return module

    def _conflicts(self, slug: str, paths: Iterable[str]) -> dict[str, str]:
        wanted = set(paths)
        conflicts: dict[str, str] = {}
        for module in self.all_modules():
            if module.module_slug == slug:
                continue
            for path in wanted.intersection(module.all_paths):
                conflicts.setdefault(path, module.module_slug)
        return conflicts

    async def add_files(self, slug: str, paths: Iterable[str], documented: bool = False) -> list[str]:
        """Add files to a module.

        Paths already in either list are skipped.

        Args:
            slug: Module slug
            paths: Source paths
            documented: Add to the documented list instead of undocumented

        Returns:
            Paths actually added

        Raises:
            ModuleNotFound: If the module does not exist
            MembershipConflict: If another module lists any of the paths
        """
        paths = list(dict.fromkeys(normalize_path(p) for p in paths))
        async with self._lock:
            module = self.require(slug)
            new = [p for p in paths if not module.contains(p)]
            conflicts = self._conflicts(slug, new)
            if conflicts:
                raise MembershipConflict(conflicts)
            for path in new:
                if documented:
                    module.files.append(
                        ModuleFile(path=path, documentation_tier=self._tiers.resolve_tier(path))
                    )
                else:
                    module.undocumented_files.append(path)
            if new:
                self._write(module)
                logger.info(f"Added {len(new)} file(s) to module {slug}")
        return new

    async def remove_files(self, slug: str, paths: Iterable[str]) -> list[str]:
        """Remove files from both lists of a module.

        Raises:
            ModuleNotFound: If the module does not exist
        """
        targets = {normalize_path(p) for p in paths}
        async with self._lock:
            module = self.require(slug)
            removed = [p for p in module.all_paths if p in targets]
            if removed:
                module.files = [f for f in module.files if f.path not in targets]
                module.undocumented_files = [p for p in module.undocumented_files if p not in targets]
                self._write(module)
        return removed

    async def mark_documented(self, slug: str, paths: Iterable[str], revision: str | None = None) -> list[str]:
        """Move files from undocumented to documented.

        Args:
            slug: Module slug
            paths: Paths now covered by the narrative
            revision: When given, recorded as the narrative's sync revision

        Returns:
            Paths moved

        Raises:
            ModuleNotFound: If the module does not exist
        """
        targets = {normalize_path(p) for p in paths}
        async with self._lock:
            module = self.require(slug)
            moved = [p for p in module.undocumented_files if p in targets]
            module.undocumented_files = [p for p in module.undocumented_files if p not in targets]
            for path in moved:
                module.files.append(
                    ModuleFile(path=path, documentation_tier=self._tiers.resolve_tier(path))
                )
            if revision is not None:
                module.git_commit_sha = revision
            if moved or revision is not None:
                self._write(module)
        return moved

    async def mark_undocumented(self, slug: str, path: str) -> bool:
        """Move a documented file back to undocumented.

        Returns:
            True if the file moved; False if it was already undocumented
            or is not part of the module

        Raises:
            ModuleNotFound: If the module does not exist
        """
        path = normalize_path(path)
        async with self._lock:
            module = self.require(slug)
            if path not in module.documented_paths:
                return False
            module.files = [f for f in module.files if f.path != path]
            module.undocumented_files.append(path)
            self._write(module)
        logger.info(f"Marked {path} undocumented in module {slug}")
        return True

    async def set_summary(self, slug: str, summary: str) -> None:
        """Update a module's summary."""
        async with self._lock:
            module = self.require(slug)
            module.module_summary = summary
            self._write(module)

    async def create(
        self,
        slug: str,
        name: str,
        description: str = "",
        paths: Iterable[str] = (),
    ) -> Module:
        """Create a module whose files all start undocumented.

        Also writes a placeholder narrative document.

        Raises:
            InvalidModuleSlug: If the slug is invalid
            ModuleAlreadyExists: If the slug is taken
            MembershipConflict: If another module lists any of the paths
        """
        validate_slug(slug)
        files = list(dict.fromkeys(normalize_path(p) for p in paths))
        async with self._lock:
            if self.exists(slug):
                raise ModuleAlreadyExists(slug)
            conflicts = self._conflicts(slug, files)
            if conflicts:
                raise MembershipConflict(conflicts)

            module = Module(
                module_name=name,
                module_slug=slug,
                module_summary=description,
                undocumented_files=files,
            )
            self._write(module)
            if not self._store.exists(self.document_path(slug)):
                body = PLACEHOLDER_BODY.format(name=name, description=description or "[To be documented]")
                self._store.write(self.document_path(slug), compose_document(module, body))
        logger.info(f"Created module {slug} with {len(files)} file(s)")
        return module

    def read_document(self, slug: str) -> str | None:
        """Read a module's narrative document, or None if absent."""
        path = self.document_path(slug)
        if not self._store.exists(path):
            return None
        return self._store.read(path)

    def write_document(self, slug: str, text: str) -> None:
        """Replace a module's narrative document."""
        self._store.write(self.document_path(slug), text)

    def restore_document(self, slug: str, previous: str | None) -> None:
        """Put back a narrative saved before a failed regeneration."""
        if previous is None:
            self._store.delete(self.document_path(slug))
        else:
            self._store.write(self.document_path(slug), previous)

    @property
    def index_path(self) -> str:
        """Default location of the module index, beside the content directory."""
        return posixpath.join(posixpath.dirname(self._content_dir), "index.md")

    def write_index(self, path: str | None = None) -> str | None:
        """Render every module into one markdown index.

        Args:
            path: Store path to write; defaults to index_path

        Returns:
            The path written, or None when there are no modules

        Raises:
            FilesystemError: If the index cannot be written
        """
        modules = self.all_modules()
        if not modules:
            return None
        target = normalize_path(path or self.index_path)
        links = {
            m.module_slug: posixpath.relpath(self.document_path(m.module_slug), posixpath.dirname(target) or ".")
            for m in modules
        }
        self._store.write(target, render_index(modules, links))
        logger.info(f"Wrote module index {target} ({len(modules)} module(s))")
        return target


def compose_document(module: Module, body: str) -> str:
    """Attach the module header block to a narrative body.

    Raises:
        FrontMatterError: If body carries a malformed header
    """
    document = parse(body)
    document.set("module_name", module.module_name)
    document.set("module_slug", module.module_slug)
    document.set("generated_at", utcnow().isoformat())
    document.set("total_files", str(len(module.all_paths)))
    document.set("doc_version", module.doc_version)
    return serialize(document)


def _one_line(text: str, limit: int = INDEX_SUMMARY_LIMIT) -> str:
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    cut = flat[:limit]
    space = cut.rfind(" ")
    if space > limit * 0.8:
        cut = cut[:space]
    return cut + "..."


def render_index(modules: list[Module], links: dict[str, str]) -> str:
    """Markdown index of modules sorted by name.

    Args:
        modules: Modules to list
        links: Slug to the relative link of its narrative document
    """
    ordered = sorted(modules, key=lambda m: (m.module_name.lower(), m.module_slug))
    lines = [
        "# Module Index",
        "",
        f"**Total Modules:** {len(ordered)}",
        "",
        f"**Generated:** {utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC",
        "",
        "| Module | Files | Summary |",
        "|--------|-------|---------|",
    ]
    for module in ordered:
        stats = module.statistics
        files = str(stats.total_files)
        if stats.undocumented_files:
            files += f" ({stats.undocumented_files} undocumented)"
        summary = _one_line(module.module_summary or "No summary available").replace("|", "\\|")
        lines.append(f"| [{module.module_name}]({links[module.module_slug]}) | {files} | {summary} |")

    lines += ["", "## Modules", ""]
    for module in ordered:
        stats = module.statistics
        lines += [
            f"### {module.module_name}",
            "",
            f"- Slug: `{module.module_slug}`",
            f"- Document: [{module.module_slug}.md]({links[module.module_slug]})",
            f"- Files: {stats.documented_files} documented, {stats.undocumented_files} pending",
            "",
            module.module_summary or "No summary available",
            "",
        ]
    return "\n".join(lines)
