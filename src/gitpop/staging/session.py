"""
Repository session controller.

A :class:`RepositorySession` is bound to one working directory for its
whole lifetime and is the only owner of the staging ledger. It runs the
scan, diff, generation and commit steps in response to user actions and
passes each step a snapshot of the staged paths taken at call time.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from gitpop.diff.diff_assembler import DEFAULT_CHAR_BUDGET, build_diff
from gitpop.llm.base import ProviderConfig
from gitpop.llm.registry import GenerationRequest, ProviderRegistry
from gitpop.staging.ledger import StagingLedger
from gitpop.vcs import commit_executor
from gitpop.vcs.git_client import FileChange
from gitpop.vcs.status_reader import NotAGitRepositoryError, scan


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class SessionState(str, Enum):
    """Whether the session's directory is usable."""

    UNSCANNED = "unscanned"
    READY = "ready"
    NOT_A_REPOSITORY = "not_a_repository"


class RepositorySession:
    """State and actions for one working directory.

    Parameters
    ----------
    repo_path : str or Path
        Directory the session was started in. It is resolved once and
        never changes afterwards.
    diff_char_budget : int, optional
        Character budget passed to the diff assembler.
    """

    def __init__(self, repo_path: Union[str, Path], diff_char_budget: int = DEFAULT_CHAR_BUDGET) -> None:
        self._repo_path = str(Path(repo_path).resolve()) if repo_path else ""
        self.diff_char_budget = diff_char_budget
        self.ledger = StagingLedger()
        self.state = SessionState.UNSCANNED

    @property
    def repo_path(self) -> str:
        return self._repo_path

    @property
    def changes(self) -> List[FileChange]:
        return self.ledger.changes

    @property
    def is_repository(self) -> bool:
        return self.state is SessionState.READY

    def refresh(self) -> List[FileChange]:
        """Rescan the working tree and replace the ledger; all entries come back unstaged.

        A directory outside any Git repository puts the session in
        ``NOT_A_REPOSITORY`` and leaves it without changes instead of
        raising. Other scan failures propagate as
        :class:`~gitpop.vcs.status_reader.ScanFailedError`.
        """
        try:
            changes = scan(self._repo_path)
        except NotAGitRepositoryError as exc:
            logger.info("%s", exc)
            self.ledger.reset([])
            self.state = SessionState.NOT_A_REPOSITORY
            return []
        self.ledger.reset(changes)
        self.state = SessionState.READY
        return self.ledger.changes

    def toggle(self, path: str) -> None:
        self.ledger.toggle(path)

    def toggle_all(self) -> None:
        self.ledger.toggle_all()

    def staged_paths(self) -> List[str]:
        return self.ledger.staged_paths()

    def build_diff(self) -> str:
        """Bounded diff of the currently staged paths."""
        return build_diff(self._repo_path, self.staged_paths(), self.diff_char_budget)

    def generate_message(self, registry: ProviderRegistry, config: ProviderConfig) -> str:
        """Ask the configured provider for a message describing the staged paths.

        Raises
        ------
        NoStagedChangesError
            If nothing is staged; the provider is not contacted.
        GenerationError
            If the provider fails.
        """
        diff_text = self.build_diff()
        return registry.generate(GenerationRequest(diff_text=diff_text, provider_config=config))

    def commit(
        self,
        message: str,
        registry: Optional[ProviderRegistry] = None,
        config: Optional[ProviderConfig] = None,
    ) -> str:
        """Commit the staged paths and rescan.

        The staged set is read once, at the start of the call. When
        ``message`` is blank and a registry and config are given, the
        message is generated first from that same set.

        Returns
        -------
        str
            The message that was committed.
        """
        paths = self.staged_paths()
        if not paths:
            raise commit_executor.EmptyFileListError("No files selected for commit")

        final_message = (message or "").strip()
        if not final_message and registry is not None and config is not None:
            diff_text = build_diff(self._repo_path, paths, self.diff_char_budget)
            final_message = registry.generate(GenerationRequest(diff_text=diff_text, provider_config=config))

        commit_executor.commit(self._repo_path, final_message, paths)
        self.refresh()
        return final_message
