"""
In-memory staging ledger.

The ledger records which of the scanned changes the user wants in the
next commit. It never touches the Git index; the selection only reaches
Git when the commit executor runs.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Iterator, List, Optional

from gitpop.vcs.git_client import FileChange


class StagingLedger:
    """Ordered collection of :class:`FileChange` with a mutable ``staged`` flag.

    All operations are total: unknown paths are ignored rather than
    reported as errors.
    """

    def __init__(self, changes: Optional[Iterable[FileChange]] = None) -> None:
        self._changes: List[FileChange] = []
        self.reset(changes or [])

    def reset(self, changes: Iterable[FileChange]) -> None:
        """Replace the whole ledger with a fresh, fully unstaged snapshot."""
        self._changes = [replace(change, staged=False) for change in changes]

    @property
    def changes(self) -> List[FileChange]:
        """A copy of the current entries in scan order."""
        return [replace(change) for change in self._changes]

    def __iter__(self) -> Iterator[FileChange]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self._changes)

    def toggle(self, path: str) -> None:
        """Flip the staged flag of ``path``; no-op when the path is unknown."""
        for change in self._changes:
            if change.path == path:
                change.staged = not change.staged
                return

    def toggle_all(self) -> None:
        """Unstage everything if everything is staged, otherwise stage everything."""
        all_staged = all(change.staged for change in self._changes)
        for change in self._changes:
            change.staged = not all_staged

    def staged_paths(self) -> List[str]:
        """Paths currently marked staged, in scan order."""
        return [change.path for change in self._changes if change.staged]

    def is_staged(self, path: str) -> bool:
        return any(change.path == path and change.staged for change in self._changes)
