"""
Version Control Capability.

Thin async wrapper around the git binary. Only revision resolution,
diffing, content retrieval, log lookups and tree listings are used;
nothing here reimplements git.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# git exits with 128 for fatal errors, including missing objects
OBJECT_NOT_FOUND_CODE = 128
_NOT_FOUND_MESSAGES = ("does not exist", "exists on disk, but not in")


class RevisionError(Exception):
    """Raised when a version-control command fails."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class VersionControl(Protocol):
    """Protocol for the version-control operations the engine needs."""

    async def resolve(self, ref: str) -> str:
        """Resolve a ref (e.g. HEAD) to a full revision id."""
        ...

    async def name_status(self, from_revision: str, to_revision: str) -> list[tuple[str, str]]:
        """List (status letter, path) pairs changed between two revisions."""
        ...

    async def diff(self, path: str, from_revision: str, to_revision: str) -> str:
        """Unified diff of one path between two revisions."""
        ...

    async def show(self, path: str, revision: str) -> str | None:
        """Content of a path at a revision, or None if absent there."""
        ...

    async def last_commit(self, path: str) -> str | None:
        """Most recent revision touching a path, or None if never committed."""
        ...

    async def list_files(self, revision: str, prefixes: list[str]) -> list[str]:
        """Every file path in the tree at a revision, below any of the prefixes."""
        ...


async def _reap(process: asyncio.subprocess.Process) -> None:
    """Kill a git child that is still running and wait for it to exit."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class GitVersionControl:
    """VersionControl implementation using the git CLI."""

    def __init__(self, repo_root: str | Path = ".", timeout_seconds: float = 30.0) -> None:
        """Initialize the wrapper.

        Args:
            repo_root: Working tree the commands run in
            timeout_seconds: Per-command timeout
        """
        self._repo_root = Path(repo_root)
        self._timeout = timeout_seconds
        self._git_path: str | None = None

    async def _run(self, args: list[str], allowed_codes: tuple[int, ...] = (0,)) -> tuple[int, str, str]:
        """Run a git command.

        Args:
            args: Arguments after 'git'
            allowed_codes: Exit codes returned instead of raised

        Returns:
            Tuple of (returncode, stdout, stderr)

        Raises:
            RevisionError: If git is missing, times out, or exits with a
                code outside allowed_codes
        """
        if self._git_path is None:
            self._git_path = shutil.which("git")
            if self._git_path is None:
                raise RevisionError("git executable not found", command=args)

        cmd = [self._git_path, *args]
        logger.debug(f"git {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self._repo_root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RevisionError(f"git command could not start: {e}", command=args) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            await _reap(process)
            raise RevisionError(
                f"git command timed out after {self._timeout}s: {' '.join(args)}", command=args
            ) from e
        except BaseException:
            # Cancelled from outside, e.g. a unit timeout
            await _reap(process)
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if process.returncode not in allowed_codes:
            raise RevisionError(
                f"git command failed: {' '.join(args)}\n{err.strip()}",
                command=args,
                returncode=process.returncode,
                stderr=err,
            )
        return process.returncode, out, err

    async def resolve(self, ref: str) -> str:
        _, out, _ = await self._run(["rev-parse", "--verify", f"{ref}^{{commit}}"])
        return out.strip()

    async def name_status(self, from_revision: str, to_revision: str) -> list[tuple[str, str]]:
        _, out, _ = await self._run(
            ["diff", "--name-status", "--no-renames", from_revision, to_revision]
        )
        entries = []
        for line in out.splitlines():
            if not line.strip():
                continue
            status, _, path = line.partition("\t")
            entries.append((status.strip()[:1], path.strip()))
        return entries

    async def diff(self, path: str, from_revision: str, to_revision: str) -> str:
        _, out, _ = await self._run(["diff", from_revision, to_revision, "--", path])
        return out

    async def show(self, path: str, revision: str) -> str | None:
        code, out, err = await self._run(
            ["show", f"{revision}:{path}"], allowed_codes=(0, OBJECT_NOT_FOUND_CODE)
        )
        if code == 0:
            return out
        if any(message in err for message in _NOT_FOUND_MESSAGES):
            return None
        raise RevisionError(
            f"git show failed for {revision}:{path}\n{err.strip()}",
            command=["show", f"{revision}:{path}"],
            returncode=code,
            stderr=err,
        )

    async def last_commit(self, path: str) -> str | None:
        _, out, _ = await self._run(["log", "-1", "--format=%H", "--", path])
        return out.strip() or None

    async def list_files(self, revision: str, prefixes: list[str]) -> list[str]:
        _, out, _ = await self._run(["ls-tree", "-r", "-z", "--name-only", revision, "--", *prefixes])
        return [path for path in out.split("\0") if path]
