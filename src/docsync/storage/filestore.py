"""
File Store Capability.

Every persisted artifact (tier documents, module records, logs) goes through
a FileStore so components never touch the filesystem directly. Paths are
POSIX-style and relative to the store root.
"""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)


class FilesystemError(Exception):
    """Raised when a store operation fails at the filesystem level."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


def normalize_path(path: str) -> str:
    """Normalize a relative path to its canonical POSIX form.

    Args:
        path: Relative path, possibly with backslashes or ./ segments

    Returns:
        Normalized path without leading ./ or /

    Raises:
        ValueError: If the path escapes the store root
    """
    cleaned = path.replace("\\", "/").strip()
    parts: list[str] = []
    for part in PurePosixPath(cleaned).parts:
        if part in ("/", "."):
            continue
        if part == "..":
            if not parts:
                raise ValueError(f"Path escapes root: {path}")
            parts.pop()
            continue
        parts.append(part)
    if not parts:
        raise ValueError(f"Empty path: {path!r}")
    return "/".join(parts)


class FileStore(Protocol):
    """Protocol for text file storage."""

    def exists(self, path: str) -> bool:
        """Check whether a file exists."""
        ...

    def read(self, path: str) -> str:
        """Read a file.

        Raises:
            FilesystemError: If the file is missing or unreadable
        """
        ...

    def write(self, path: str, content: str) -> None:
        """Write a file, creating parent directories.

        Raises:
            FilesystemError: If the write fails
        """
        ...

    def delete(self, path: str) -> bool:
        """Delete a file. Returns False if it did not exist."""
        ...

    def list(self, prefix: str) -> list[str]:
        """List files below a directory prefix, sorted."""
        ...


class LocalFileStore:
    """FileStore backed by a directory on disk.

    Writes go through a temporary sibling file and os.replace so a reader
    never observes a half-written file.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Store root directory."""
        return self._root

    def _resolve(self, path: str) -> Path:
        return self._root / normalize_path(path)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def read(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except OSError as e:
            raise FilesystemError(f"Failed to read {path}: {e}", path=path) from e

    def write(self, path: str, content: str) -> None:
        target = self._resolve(path)
        tmp_path = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            logger.error(f"Failed to write file {path}: {e}")
            raise FilesystemError(f"Failed to write {path}: {e}", path=path) from e

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(f"Failed to delete {path}: {e}", path=path) from e
        return True

    def list(self, prefix: str) -> list[str]:
        base = self._resolve(prefix)
        if not base.is_dir():
            return []
        return sorted(
            p.relative_to(self._root).as_posix()
            for p in base.rglob("*")
            if p.is_file() and not p.name.endswith(".tmp")
        )


class InMemoryFileStore:
    """FileStore kept entirely in a dict.

    Used by tests and by dry runs. `fail_writes` holds paths whose next
    write raises FilesystemError, for exercising rollback.
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = {
            normalize_path(k): v for k, v in (files or {}).items()
        }
        self.fail_writes: set[str] = set()
        self.write_count = 0

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self.files

    def read(self, path: str) -> str:
        key = normalize_path(path)
        if key not in self.files:
            raise FilesystemError(f"No such file: {path}", path=path)
        return self.files[key]

    def write(self, path: str, content: str) -> None:
        key = normalize_path(path)
        if key in self.fail_writes:
            self.fail_writes.discard(key)
            raise FilesystemError(f"Simulated write failure: {path}", path=path)
        self.files[key] = content
        self.write_count += 1

    def delete(self, path: str) -> bool:
        return self.files.pop(normalize_path(path), None) is not None

    def list(self, prefix: str) -> list[str]:
        base = normalize_path(prefix) + "/"
        return sorted(k for k in self.files if k.startswith(base))
