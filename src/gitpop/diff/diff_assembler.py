"""
Diff assembly for commit message generation.

:func:`build_diff` produces a single unified diff restricted to the
paths the user staged in the ledger. The result is bounded by a
character budget so it fits a provider's context window: when the
combined diff is too large, :func:`truncate_file_diffs` cuts the largest
files hardest and appends a marker saying how much was dropped.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

from gitpop.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_CHAR_BUDGET = 12000
BINARY_PLACEHOLDER = "<binary file changed>"

_BINARY_RE = re.compile(r"^(Binary files .* differ|GIT binary patch)$", re.MULTILINE)


class DiffError(Exception):
    """Base class for diff assembly failures."""

    pass


class NoStagedChangesError(DiffError):
    """Raised when no paths are staged, so there is nothing to describe."""

    pass


class DiffFailedError(DiffError):
    """Raised when Git could not produce a diff."""

    pass


def truncation_marker(omitted_bytes: int, truncated_files: int) -> str:
    """Return the note appended to a diff that was cut down to budget."""
    return (
        f"\n... [diff truncated: {omitted_bytes} bytes omitted "
        f"from {truncated_files} file(s)]\n"
    )


def _placeholder_for(path: str) -> str:
    return f"diff --git a/{path} b/{path}\n{BINARY_PLACEHOLDER}\n"


def _cut(text: str, limit: int) -> str:
    """Return a prefix of ``text`` within ``limit``, ending on a line break if possible.

    A prefix without any line break is one character short of ``limit`` so
    that the caller can close it with a newline.
    """
    if len(text) <= limit:
        return text
    newline = text.rfind("\n", 0, limit)
    if newline >= 0:
        return text[: newline + 1]
    return text[: max(limit - 1, 0)]


def _allocate(sizes: Dict[int, int], budget: int) -> Dict[int, int]:
    """Split ``budget`` across entries, smallest first.

    Each entry is offered an equal share of what is left. Entries that fit
    in their share are kept whole and the remainder is shared among the
    bigger ones, so the largest entries lose the most.
    """
    allocation: Dict[int, int] = {}
    remaining = budget
    ordered = sorted(sizes, key=lambda key: (sizes[key], key))
    for position, key in enumerate(ordered):
        share = remaining // (len(ordered) - position)
        allocation[key] = min(sizes[key], share)
        remaining -= allocation[key]
    return allocation


def truncate_file_diffs(
    file_diffs: Sequence[Tuple[str, str]],
    budget: int = DEFAULT_CHAR_BUDGET,
) -> Tuple[str, bool]:
    """Join per-file diffs, trimming them to ``budget`` characters if needed.

    Parameters
    ----------
    file_diffs : Sequence[Tuple[str, str]]
        ``(path, diff_text)`` pairs in presentation order.
    budget : int
        Maximum number of characters of diff content.

    Returns
    -------
    Tuple[str, bool]
        The assembled text and whether truncation occurred. When it did,
        the text is at most ``budget`` characters plus the marker.
    """
    if budget <= 0:
        raise ValueError("budget must be positive")

    total = sum(len(text) for _, text in file_diffs)
    if total <= budget:
        return "".join(text for _, text in file_diffs), False

    sizes = {index: len(text) for index, (_, text) in enumerate(file_diffs)}
    allocation = _allocate(sizes, budget)

    parts: List[str] = []
    omitted_bytes = 0
    truncated_files = 0
    for index, (path, text) in enumerate(file_diffs):
        kept = _cut(text, allocation[index])
        if len(kept) < len(text):
            truncated_files += 1
            omitted_bytes += len(text[len(kept):].encode("utf-8"))
            logger.debug("Truncated diff for %s to %d of %d chars", path, len(kept), len(text))
            if kept and not kept.endswith("\n"):
                kept += "\n"
        parts.append(kept)

    return "".join(parts) + truncation_marker(omitted_bytes, truncated_files), True


def _is_binary(diff_text: str) -> bool:
    return bool(_BINARY_RE.search(diff_text))


def build_diff(
    repo_path: Union[str, Path],
    staged_paths: Sequence[str],
    budget: int = DEFAULT_CHAR_BUDGET,
) -> str:
    """Build the bounded diff text for exactly ``staged_paths``.

    Parameters
    ----------
    repo_path : str or Path
        Directory inside the working tree.
    staged_paths : Sequence[str]
        Repository-relative paths selected in the ledger.
    budget : int
        Character budget for the diff content.

    Returns
    -------
    str
        Unified diff of the staged paths. Binary files are represented by
        a placeholder line instead of their content.

    Raises
    ------
    NoStagedChangesError
        If ``staged_paths`` is empty or none of them differs from HEAD.
    DiffFailedError
        If Git fails or ``repo_path`` is not a repository.
    """
    paths = list(dict.fromkeys(staged_paths))
    if not paths:
        raise NoStagedChangesError("No staged changes: select at least one file first")

    root = GitClient.find_repo_root(Path(repo_path)) if repo_path else None
    if root is None:
        raise DiffFailedError(f"Not a git repository: {repo_path}")
    client = GitClient(root)

    try:
        untracked = client.untracked_paths(paths)
        file_diffs: List[Tuple[str, str]] = []
        for path in paths:
            text = client.get_diff(path, untracked=path in untracked)
            if _is_binary(text):
                text = _placeholder_for(path)
            elif text and not text.endswith("\n"):
                text += "\n"
            file_diffs.append((path, text))
    except GitError as exc:
        raise DiffFailedError(str(exc)) from exc
    if not any(text for _, text in file_diffs):
        raise NoStagedChangesError("The selected files have no changes to describe")

    diff, truncated = truncate_file_diffs(file_diffs, budget)
    if truncated:
        logger.info("Diff exceeded %d characters and was truncated", budget)
    logger.debug("Assembled diff for %d path(s): %d chars", len(paths), len(diff))
    return diff
