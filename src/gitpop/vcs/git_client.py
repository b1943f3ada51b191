"""
Git client implementation for gitpop.

This module wraps the Git operations the commit workflow needs: reading
the working tree status, producing per-file diffs, staging an explicit
set of paths and committing only those paths. All subprocess calls go
through :meth:`GitClient._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Set


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ChangeKind(str, Enum):
    """Simplified change category shown to the user.

    ``UNMERGED`` covers both untracked files and merge conflicts.
    """

    MODIFIED = "M"
    ADDED = "A"
    DELETED = "D"
    UNMERGED = "U"


# Porcelain XY codes that denote an unresolved merge conflict
CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


@dataclass
class FileChange:
    """Representation of a single pending change in the working tree."""

    path: str
    kind: ChangeKind
    staged: bool = False


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


def classify_status(code: str) -> ChangeKind:
    """Map a two-letter porcelain status code to a :class:`ChangeKind`."""
    if code == "??" or code in CONFLICT_CODES:
        return ChangeKind.UNMERGED
    if "A" in code:
        return ChangeKind.ADDED
    if "M" in code or "T" in code:
        return ChangeKind.MODIFIED
    if "D" in code:
        return ChangeKind.DELETED
    return ChangeKind.MODIFIED


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is the root of a Git repository."""
        return (path / ".git").exists()

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached. ``.git`` may be a file for worktrees and
        submodules.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If git cannot be started, or if the command exits with a
            non-zero status when ``check`` is True.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid characters instead of failing
            )
        except OSError as e:
            # git missing from PATH, or the working directory vanished
            logger.error("Unable to execute git: %s", e)
            raise GitError(f"Unable to execute git: {e}") from e

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Status and change detection
    # ------------------------------------------------------------------
    def get_changes(self) -> List[FileChange]:
        """Get the list of changed paths in the working tree.

        Uses NUL-separated porcelain output so that paths containing
        spaces or non-ASCII characters are returned verbatim. Untracked
        files are listed individually. A rename or copy is reported as a
        deletion of the source path (renames only) followed by an
        addition of the destination path.

        Returns
        -------
        List[FileChange]
            Changes in the order Git reports them, all unstaged.

        Raises
        ------
        GitError
            If the git status command fails.
        """
        result = self._run(
            ["status", "--porcelain=v1", "-z", "--untracked-files=all"], check=True
        )
        entries = result.stdout.split("\0")
        changes: List[FileChange] = []

        index = 0
        while index < len(entries):
            entry = entries[index]
            index += 1
            # Each entry is "XY <path>"; anything shorter is padding
            if len(entry) < 4:
                continue
            status_code = entry[:2]
            path = entry[3:]

            if status_code[0] in "RC" or status_code[1] in "RC":
                # The source path follows as its own NUL-terminated entry
                source = entries[index] if index < len(entries) else ""
                index += 1
                if "R" in status_code and source:
                    changes.append(FileChange(path=source, kind=ChangeKind.DELETED))
                changes.append(FileChange(path=path, kind=ChangeKind.ADDED))
                continue

            changes.append(FileChange(path=path, kind=classify_status(status_code)))

        logger.debug("Detected Git changes: %s", changes)
        return changes

    def has_head(self) -> bool:
        """Return True if the repository has at least one commit."""
        result = self._run(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    def untracked_paths(self, paths: Iterable[str]) -> Set[str]:
        """Return the subset of ``paths`` that Git does not track yet."""
        paths = list(paths)
        if not paths:
            return set()
        result = self._run(
            ["ls-files", "--others", "--exclude-standard", "-z", "--"] + paths,
            check=True,
        )
        return {p for p in result.stdout.split("\0") if p}

    def get_diff(self, file_path: str, untracked: bool = False) -> str:
        """Return the unified diff for one path relative to HEAD.

        Untracked files are diffed against the null device so that their
        full content shows up as additions. In a repository without any
        commit, the index and working tree diffs are concatenated.
        """
        base = ["diff", "--no-color", "--no-ext-diff"]
        if untracked:
            result = self._run(base + ["--no-index", "--", os.devnull, file_path], check=False)
            # --no-index exits with 1 when the files differ
            if result.returncode not in (0, 1):
                raise GitError(result.stderr.strip() or f"Failed to diff {file_path}")
            return result.stdout
        if self.has_head():
            return self._run(base + ["HEAD", "--", file_path], check=True).stdout
        cached = self._run(base + ["--cached", "--", file_path], check=True).stdout
        worktree = self._run(base + ["--", file_path], check=True).stdout
        return cached + worktree

    # ------------------------------------------------------------------
    # Staging and committing
    # ------------------------------------------------------------------
    def stage_files(self, files: List[str]) -> None:
        """Stage the given files for commit.

        Paths present on disk are added with ``git add``; vanished paths
        are removed from the index with ``git rm --cached``.
        """
        for file in files:
            abs_path = self.repo_root / file
            if abs_path.exists():
                # Modified, added or untracked file
                self._run(["add", "--", file], check=True)
            else:
                # Deleted file
                self._run(["rm", "--cached", "--quiet", "--ignore-unmatch", "--", file], check=True)

    def merge_in_progress(self) -> bool:
        """Return True while a merge is waiting to be concluded."""
        result = self._run(["rev-parse", "-q", "--verify", "MERGE_HEAD"], check=False)
        return result.returncode == 0

    def commit(self, message: str, files: Optional[List[str]] = None) -> None:
        """Create a commit with the given message.

        When ``files`` is given, ``--only`` restricts the commit to those
        paths, leaving anything else already in the index staged but
        uncommitted. Git refuses partial commits while a merge is in
        progress, so in that case the files are expected to be staged
        already and the whole index is committed to conclude the merge.
        Multi-line commit messages are supported. If the commit fails, a
        GitError is raised.
        """
        if files and not self.merge_in_progress():
            self._run(["commit", "--only", "-m", message, "--"] + list(files), check=True)
            return
        if files:
            logger.info("Merge in progress; committing the whole index to conclude it")
        self._run(["commit", "-m", message], check=True)
