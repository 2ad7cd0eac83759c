"""
In-memory stand-ins for version control and the generator.

- FakeVersionControl keeps revisions as path -> content snapshots
- ScriptedGenerator returns valid tier content and can be told to fail
"""

from collections.abc import Iterable
from typing import Any

from docsync.config.models import Tier
from docsync.generator.base import (
    AssignmentRecommendation,
    FileDoc,
    TierContent,
    TierUpdate,
)
from docsync.modules.models import ModuleOverview
from docsync.storage.filestore import InMemoryFileStore
from docsync.storage.tiers import TierStore
from docsync.vcs.git import RevisionError


class FakeVersionControl:
    """VersionControl over in-memory snapshots.

    Each commit copies the previous snapshot and applies changes; a change
    mapped to None deletes the path. When a worktree store is given, it is
    kept in step with HEAD like a checked-out working tree.
    """

    def __init__(self, worktree: InMemoryFileStore | None = None) -> None:
        self.revisions: list[str] = []
        self.snapshots: dict[str, dict[str, str]] = {}
        self.worktree = worktree
        self.calls: list[tuple[str, ...]] = []
        self.fail_on: set[str] = set()

    @property
    def head(self) -> str:
        return self.revisions[-1]

    def commit(self, revision: str, changes: dict[str, str | None]) -> str:
        snapshot = dict(self.snapshots[self.head]) if self.revisions else {}
        for path, content in changes.items():
            if content is None:
                snapshot.pop(path, None)
                if self.worktree is not None:
                    self.worktree.files.pop(path, None)
            else:
                snapshot[path] = content
                if self.worktree is not None:
                    self.worktree.files[path] = content
        self.revisions.append(revision)
        self.snapshots[revision] = snapshot
        return revision

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RevisionError(f"Simulated {operation} failure", command=["git", operation], returncode=128)

    async def resolve(self, ref: str) -> str:
        self.calls.append(("resolve", ref))
        self._check("resolve")
        if ref == "HEAD":
            return self.head
        if ref in self.snapshots:
            return ref
        raise RevisionError(f"Unknown revision {ref}", command=["git", "rev-parse", ref], returncode=128)

    async def name_status(self, from_revision: str, to_revision: str) -> list[tuple[str, str]]:
        self.calls.append(("name_status", from_revision, to_revision))
        self._check("name_status")
        before = self.snapshots[from_revision]
        after = self.snapshots[to_revision]
        result = []
        for path in sorted(set(before) | set(after)):
            if path not in before:
                result.append(("A", path))
            elif path not in after:
                result.append(("D", path))
            elif before[path] != after[path]:
                result.append(("M", path))
        return result

    async def diff(self, path: str, from_revision: str, to_revision: str) -> str:
        self.calls.append(("diff", path))
        self._check("diff")
        old = self.snapshots[from_revision].get(path)
        new = self.snapshots[to_revision].get(path)
        if old is None or new is None or old == new:
            return ""
        return f"--- a/{path}\n+++ b/{path}\n-{old}\n+{new}\n"

    async def show(self, path: str, revision: str) -> str | None:
        self.calls.append(("show", path, revision))
        self._check("show")
        return self.snapshots[revision].get(path)

    async def last_commit(self, path: str) -> str | None:
        self.calls.append(("last_commit", path))
        previous: str | None = None
        last: str | None = None
        for revision in self.revisions:
            content = self.snapshots[revision].get(path)
            if content != previous:
                last = revision
            previous = content
        return last

    async def list_files(self, revision: str, prefixes: list[str]) -> list[str]:
        self.calls.append(("list_files", revision))
        self._check("list_files")
        return sorted(p for p in self.snapshots[revision] if any(p.startswith(pre) for pre in prefixes))


def make_tiers(path: str, revision: str) -> TierContent:
    """Valid tier content for a path."""
    name = path.rsplit("/", 1)[-1].split(".")[0]
    return {
        Tier.MICRO: f"## {name} · Micro-blurb\n\n{name} coordinates a focused part of the application.",
        Tier.STANDARD: (
            f"# {name}\n\n## Purpose\n{name} handles one responsibility.\n\n"
            "## Behaviour & Flow\nIt validates input, performs the work and returns a result.\n"
        ),
        Tier.EXPANSIVE: (
            "---\n"
            "doc_version: 1\n"
            "doc_tier: expansive\n"
            f"source_path: {path}\n"
            f"commit_sha: {revision}\n"
            "---\n"
            f"# {name}\n\n## File Purpose\n{name} in depth.\n\n## Public API\nSignatures only.\n"
        ),
    }


MODULE_BODY = (
    "# {name}\n\n## Overview\n{name} groups the files that {count} documented "
    "sources describe. It keeps related behaviour together.\n\n## How This Module Works\nDetails.\n"
)


class ScriptedGenerator:
    """Generator returning canned, valid content.

    `errors` maps a key (a path or module name) to a queue consumed one entry
    per call: an exception is raised, None lets that call behave normally.
    `updates` maps a path to the TierUpdate returned by update_tiers.
    """

    def __init__(self) -> None:
        self.errors: dict[str, list[Exception | None]] = {}
        self.updates: dict[str, TierUpdate] = {}
        self.recommendations: list[AssignmentRecommendation] = []
        self.calls: list[tuple[str, Any]] = []

    def _maybe_raise(self, key: str) -> None:
        queue = self.errors.get(key)
        if queue:
            error = queue.pop(0)
            if error is not None:
                raise error

    async def generate_tiers(self, source_text: str, path: str, revision: str) -> TierContent:
        self.calls.append(("generate_tiers", path))
        self._maybe_raise(path)
        return make_tiers(path, revision)

    async def update_tiers(
        self,
        source_text: str,
        diff_text: str,
        existing: TierContent,
        path: str,
        revision: str,
    ) -> TierUpdate:
        self.calls.append(("update_tiers", path))
        self._maybe_raise(path)
        if path in self.updates:
            return dict(self.updates[path])
        return dict(make_tiers(path, revision))

    async def regenerate_module_document(
        self,
        module_name: str,
        current_document: str,
        new_file_docs: list[FileDoc],
    ) -> str:
        self.calls.append(("regenerate_module_document", module_name))
        self._maybe_raise(module_name)
        return MODULE_BODY.format(name=module_name, count=len(new_file_docs))

    async def recommend_assignments(
        self,
        unassigned: list[str],
        modules: list[ModuleOverview],
    ) -> list[AssignmentRecommendation]:
        self.calls.append(("recommend_assignments", tuple(unassigned)))
        self._maybe_raise("assignments")
        return list(self.recommendations)

    def called(self, method: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == method]


async def no_sleep(delay: float) -> None:
    """Requeue sleep that returns immediately."""
    return None


def seed_documented(
    tier_store: TierStore,
    store: InMemoryFileStore,
    paths: Iterable[str],
    revision: str = "r0",
) -> None:
    """Put source files and all three tiers in place for paths."""
    for path in paths:
        store.files[path] = f"<?php // {path}"
        tier_store.write_atomic(path, make_tiers(path, revision))
