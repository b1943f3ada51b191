"""
Commit message extraction from raw model output.

Providers are told to answer with nothing but a Conventional Commit
message, but models still wrap it in reasoning tags, Markdown fences,
quotes or a chatty preamble. :func:`extract_commit_message` peels those
layers off and returns the message itself:

  type(scope): description

  optional body
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from gitpop.llm.base import MalformedResponseError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


COMMIT_TYPES = (
    "feat", "fix", "docs", "style", "refactor", "perf",
    "test", "build", "ci", "chore", "revert",
)

_TYPES = "|".join(COMMIT_TYPES)

# "feat(scope)!: description", optionally wrapped in quotes, backticks or bold
HEADER_RE = re.compile(
    rf"^\s*(?:\*\*|[`'\"])?\s*\[?({_TYPES})\]?(\([^)]*\))?(!)?:\s+\S",
    re.IGNORECASE,
)

_FENCE_RE = re.compile(r"```[^\n]*\n(.*?)```", re.DOTALL)

# Lines starting like these are commentary about the message, not the message
COMMENTARY_MARKERS = (
    "let me",
    "i will",
    "i'll",
    "sure",
    "certainly",
    "based on",
    "looking at",
    "analyzing",
    "the changes show",
    "here's",
    "here is",
    "this commit message",
    "this message",
    "i hope",
    "feel free",
    "explanation:",
)


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Many modern LLMs with reasoning capabilities output their thinking
    process in XML-like tags such as <think>, <thinking>, <thought>,
    or <reasoning>. This function strips these tags and their contents
    from the response, leaving only the actual output.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    >>> strip_thinking_tags("<thinking>thoughts</thinking>\\n\\nReal answer")
    'Real answer'
    """
    thinking_patterns = [
        r"<think>.*?</think>",
        r"<thinking>.*?</thinking>",
        r"<thought>.*?</thought>",
        r"<reasoning>.*?</reasoning>",
    ]

    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, "", result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or ``text`` without stray fence lines."""
    match = _FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    lines = [line for line in text.splitlines() if not line.strip().startswith("```")]
    return "\n".join(lines).strip()


def _is_commentary(line: str) -> bool:
    lower = line.strip().lower()
    return any(lower.startswith(marker) for marker in COMMENTARY_MARKERS)


def _find_header(lines: List[str]) -> Optional[int]:
    for index, line in enumerate(lines):
        if HEADER_RE.match(line) and not _is_commentary(line):
            return index
    return None


def _drop_trailing_commentary(lines: List[str]) -> List[str]:
    """Cut everything from the first blank-line-separated paragraph that is commentary."""
    for index in range(1, len(lines)):
        if not lines[index - 1].strip() and _is_commentary(lines[index]):
            return lines[: index - 1]
    return lines


def _clean_header(line: str) -> str:
    header = line.strip()
    if header.startswith("**") and header.endswith("**"):
        header = header[2:-2].strip()
    if header[:1] in "`'\"":
        header = header.strip("`'\"").strip()
    # "[feat]: x" -> "feat: x"
    return re.sub(rf"^\[({_TYPES})\]", r"\1", header, flags=re.IGNORECASE)


def extract_commit_message(raw_response: str) -> str:
    """Extract the commit message from a raw provider reply.

    Parameters
    ----------
    raw_response : str
        The text returned by a provider.

    Returns
    -------
    str
        The commit message, starting at its header line when one is
        recognisable, with surrounding commentary removed.

    Raises
    ------
    MalformedResponseError
        If nothing usable is left after cleaning.
    """
    text = strip_code_fences(strip_thinking_tags(raw_response or ""))
    lines = [line.rstrip() for line in text.splitlines()]

    start = _find_header(lines)
    if start is not None:
        lines = lines[start:]
        lines[0] = _clean_header(lines[0])
    else:
        # No Conventional Commit header: skip preamble lines such as
        # "Here is the commit message:" and keep the rest
        while lines and (not lines[0].strip() or _is_commentary(lines[0]) or lines[0].strip().endswith(":")):
            lines = lines[1:]
        logger.debug("No Conventional Commit header found in model reply")

    lines = _drop_trailing_commentary(lines)
    message = "\n".join(lines).strip()
    # A single-line reply is often wrapped in quotes or backticks
    if "\n" not in message and len(message) > 1 and message[0] == message[-1] and message[0] in "`'\"":
        message = message[1:-1].strip()

    if not message:
        raise MalformedResponseError("Provider returned no usable commit message")
    return message
