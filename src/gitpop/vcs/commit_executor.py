"""
Commit executor.

:func:`commit` stages exactly the paths it is given and creates one
commit restricted to them. Other modifications in the working tree, and
anything the user had already put in the index by other means, stay
where they are.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

from gitpop.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class CommitError(Exception):
    """Base class for commit failures."""

    pass


class EmptyMessageError(CommitError):
    """Raised when the commit message is empty or whitespace."""

    pass


class EmptyFileListError(CommitError):
    """Raised when no paths were selected for the commit."""

    pass


class CommitFailedError(CommitError):
    """Raised when Git refused to stage or commit (hooks, identity, vanished files)."""

    pass


def commit(repo_path: Union[str, Path], message: str, paths: Iterable[str]) -> None:
    """Commit ``paths`` with ``message``.

    The caller's list is trusted as-is; it does not have to match any
    ledger state. Nothing is cached afterwards, so callers are expected
    to rescan the repository on success.

    Raises
    ------
    EmptyMessageError
        If ``message`` is blank.
    EmptyFileListError
        If ``paths`` is empty.
    CommitFailedError
        If staging or committing fails. No commit is created in that case.
    """
    if not message or not message.strip():
        raise EmptyMessageError("Commit message must not be empty")
    files = list(dict.fromkeys(paths))
    if not files:
        raise EmptyFileListError("No files selected for commit")

    root = GitClient.find_repo_root(Path(repo_path)) if repo_path else None
    if root is None:
        raise CommitFailedError(f"Not a git repository: {repo_path}")

    client = GitClient(root)
    try:
        client.stage_files(files)
        client.commit(message.strip(), files)
    except GitError as exc:
        raise CommitFailedError(str(exc)) from exc
    logger.info("Committed %d file(s) in %s", len(files), root)
