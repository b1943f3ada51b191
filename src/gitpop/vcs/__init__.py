"""
Version control integration.

This package wraps the ``git`` binary (:mod:`gitpop.vcs.git_client`) and
builds the two repository-facing operations on top of it: scanning the
working tree for changes (:mod:`gitpop.vcs.status_reader`) and
committing an explicit set of paths (:mod:`gitpop.vcs.commit_executor`).
"""

from .git_client import ChangeKind, FileChange, GitClient, GitError  # noqa: F401
from .status_reader import NotAGitRepositoryError, ScanError, ScanFailedError, scan  # noqa: F401
from .commit_executor import (  # noqa: F401
    CommitError,
    CommitFailedError,
    EmptyFileListError,
    EmptyMessageError,
    commit,
)
