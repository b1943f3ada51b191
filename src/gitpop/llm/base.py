"""
Shared pieces for the generation providers.

Contains the error taxonomy every provider reports through, the
provider selection (:class:`ProviderKind` / :class:`ProviderConfig`),
the system prompt used for all backends, and the HTTP helpers that map
transport failures and status codes to those errors so that each
provider module only deals with its own request and response shape.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from textwrap import dedent
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import requests


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_LOCAL_URL = "http://localhost:11434"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1"

# Longest excerpt of an error body carried into exception messages
_ERROR_BODY_LIMIT = 300


class GenerationError(Exception):
    """Base exception for commit message generation failures."""

    pass


class ProviderUnreachableError(GenerationError):
    """Raised when the provider endpoint cannot be connected to."""

    pass


class ProviderAuthError(GenerationError):
    """Raised when the credential is missing or rejected."""

    pass


class ProviderTimeoutError(GenerationError):
    """Raised when the provider does not answer within the request timeout."""

    pass


class ProviderRateLimitedError(GenerationError):
    """Raised when the provider answers with HTTP 429."""

    pass


class MalformedResponseError(GenerationError):
    """Raised when the response cannot be parsed or holds no message."""

    pass


class ProviderFailedError(GenerationError):
    """Raised for any other provider-side failure."""

    pass


class GenerationInProgressError(GenerationError):
    """Raised when a generation is requested while another is still running."""

    pass


class ProviderKind(str, Enum):
    """Supported backends. Values are the identifiers used in settings files."""

    LOCAL = "ollama"
    OPENAI_COMPATIBLE = "openai"
    GEMINI = "gemini"
    CLAUDE = "anthropic"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ProviderKind.LOCAL: "Ollama",
    ProviderKind.OPENAI_COMPATIBLE: "OpenAI",
    ProviderKind.GEMINI: "Gemini",
    ProviderKind.CLAUDE: "Anthropic",
    ProviderKind.CUSTOM: "Custom endpoint",
}


@dataclass(frozen=True)
class ProviderConfig:
    """The active AI backend selection.

    ``credential`` is kept out of ``repr()`` so the config can be logged
    safely.
    """

    provider: ProviderKind
    model: str
    credential: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def requires_credential(self) -> bool:
        return self.provider is not ProviderKind.LOCAL


SYSTEM_PROMPT = dedent(
    """
    You are an expert software engineer writing git commit messages.
    Write one commit message for the diff you are given, following the
    Conventional Commits format:

    type(scope): description

    optional body

    Rules:
    - type is one of: feat, fix, docs, style, refactor, perf, test, build, ci, chore, revert
    - scope is optional and names the area of code affected
    - description is in imperative mood, at most 72 characters, no trailing period
    - the optional body, separated by a blank line, explains what changed and why
    - only describe changes that are actually shown in the diff
    - if the diff says it was truncated, describe only what is visible

    Respond with ONLY the commit message. No markdown fences, no quotes,
    no preamble such as "Here is the commit message", no explanation
    afterwards.
    """
).strip()


def build_user_prompt(diff_text: str) -> str:
    """Wrap the diff into the user turn sent to every provider."""
    return f"Generate a commit message for the following git diff.\n\nDiff:\n{diff_text}"


class ProviderClient(ABC):
    """Interface implemented by every backend client."""

    name: str = "provider"

    @abstractmethod
    def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Send ``prompt`` with ``system`` instructions and return the raw reply text."""


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------

def _excerpt(text: str) -> str:
    text = (text or "").strip()
    if len(text) > _ERROR_BODY_LIMIT:
        return text[:_ERROR_BODY_LIMIT] + "..."
    return text


def _check_status(response: requests.Response, provider: str) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    body = _excerpt(getattr(response, "text", ""))
    logger.error("%s returned HTTP %s: %s", provider, status, body)
    if status in (401, 403):
        raise ProviderAuthError(f"{provider} rejected the credential (HTTP {status}). Check your API key. {body}".strip())
    if status == 429:
        raise ProviderRateLimitedError(f"{provider} rate limit reached (HTTP 429). Try again later. {body}".strip())
    raise ProviderFailedError(f"{provider} API error: HTTP {status} {body}".strip())


def _send(
    method: str,
    url: str,
    provider: str,
    timeout: float,
    payload: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    logger.debug(
        "%s %s for %s (%d payload chars, timeout %.0fs)",
        method.upper(),
        url,
        provider,
        len(json.dumps(payload)) if payload is not None else 0,
        timeout,
    )
    try:
        if method == "get":
            response = requests.get(url, headers=dict(headers or {}), timeout=timeout)
        else:
            response = requests.post(url, json=payload, headers=dict(headers or {}), timeout=timeout)
    except requests.exceptions.ConnectTimeout as exc:
        # Checked before Timeout: an unanswered connect means the host is unreachable
        logger.error("Connection to %s timed out: %s", provider, exc)
        raise ProviderUnreachableError(f"Failed to connect to {provider} at {url}: {exc}") from exc
    except requests.exceptions.Timeout as exc:
        logger.error("%s did not answer within %.0fs", provider, timeout)
        raise ProviderTimeoutError(f"{provider} did not respond within {timeout:g} seconds") from exc
    except requests.exceptions.ConnectionError as exc:
        logger.error("Failed to connect to %s: %s", provider, exc)
        raise ProviderUnreachableError(f"Failed to connect to {provider} at {url}: {exc}") from exc
    except requests.RequestException as exc:
        logger.error("Request to %s failed: %s", provider, exc)
        raise ProviderFailedError(f"Request to {provider} failed: {exc}") from exc

    _check_status(response, provider)
    try:
        data = response.json()
    except ValueError as exc:
        logger.error("Failed to parse %s response: %s", provider, exc)
        raise MalformedResponseError(f"Failed to parse {provider} response") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Unexpected response structure from {provider}")
    return data


def post_json(
    url: str,
    payload: Mapping[str, Any],
    provider: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """POST ``payload`` as JSON and return the decoded JSON object.

    Raises
    ------
    GenerationError
        The subclass matching the transport failure or HTTP status.
    """
    return _send("post", url, provider, timeout, payload=payload, headers=headers)


def get_json(
    url: str,
    provider: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """GET ``url`` and return the decoded JSON object."""
    return _send("get", url, provider, timeout, headers=headers)


def extract_text(data: Any, path: Sequence[Union[str, int]], provider: str) -> str:
    """Follow ``path`` through nested dicts/lists and return the string found there.

    Raises
    ------
    MalformedResponseError
        If any step is missing or the final value is not a string.
    """
    current = data
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError(f"Unexpected response structure from {provider}") from exc
    if not isinstance(current, str):
        raise MalformedResponseError(f"Unexpected response structure from {provider}")
    return current
