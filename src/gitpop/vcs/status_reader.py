"""
Repository status reader.

:func:`scan` turns the state of a working tree into the canonical list
of :class:`~gitpop.vcs.git_client.FileChange` objects. It is purely
observational: nothing in the repository is modified and every returned
change starts out unstaged, because staging is owned by the session's
ledger rather than by Git.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from gitpop.vcs.git_client import FileChange, GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ScanError(Exception):
    """Base class for failures while reading repository status."""

    pass


class NotAGitRepositoryError(ScanError):
    """Raised when the path is not inside a Git working tree."""

    pass


class ScanFailedError(ScanError):
    """Raised when Git could not report the status (missing binary, corrupt metadata, ...)."""

    pass


def open_repository(repo_path: Optional[Union[str, Path]]) -> GitClient:
    """Return a :class:`GitClient` rooted at the repository containing ``repo_path``.

    Raises
    ------
    NotAGitRepositoryError
        If ``repo_path`` is empty or no ancestor holds Git metadata.
    ScanFailedError
        If ``repo_path`` does not name an existing directory.
    """
    if not repo_path:
        raise NotAGitRepositoryError("No repository path given")
    start = Path(repo_path)
    if not start.is_dir():
        raise ScanFailedError(f"Path does not exist or is not a directory: {start}")
    root = GitClient.find_repo_root(start)
    if root is None:
        raise NotAGitRepositoryError(f"Not a git repository (or any of the parent directories): {start}")
    return GitClient(root)


def scan(repo_path: Union[str, Path]) -> List[FileChange]:
    """Return every path with a pending change relative to the last commit.

    Parameters
    ----------
    repo_path : str or Path
        Directory inside the working tree. Returned paths are relative
        to the repository root, not to this directory.

    Returns
    -------
    List[FileChange]
        One entry per path, in Git's output order, with ``staged`` False.

    Raises
    ------
    NotAGitRepositoryError
        If the path is outside any Git working tree.
    ScanFailedError
        For any other failure reported by Git.
    """
    client = open_repository(repo_path)
    try:
        changes = client.get_changes()
    except GitError as exc:
        message = str(exc)
        if "not a git repository" in message.lower():
            raise NotAGitRepositoryError(message) from exc
        raise ScanFailedError(message) from exc
    logger.debug("Scanned %s: %d change(s)", client.repo_root, len(changes))
    return changes
