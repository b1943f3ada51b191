"""
Generation provider registry.

:class:`ProviderRegistry` is the one entry point for turning a diff into
a commit message. It builds the client for the configured backend, sends
the shared system prompt plus the diff, and cleans the reply with
:func:`~gitpop.llm.commit_message_generator.extract_commit_message`.

Adding a backend means writing its client module and registering one
factory in ``_FACTORIES``; callers do not change.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict

from gitpop.llm.base import (
    DEFAULT_LOCAL_URL,
    DEFAULT_OPENAI_URL,
    SYSTEM_PROMPT,
    GenerationInProgressError,
    ProviderAuthError,
    ProviderClient,
    ProviderConfig,
    ProviderFailedError,
    ProviderKind,
    build_user_prompt,
)
from gitpop.llm.claude_client import ClaudeClient
from gitpop.llm.commit_message_generator import extract_commit_message
from gitpop.llm.gemini_client import GeminiClient
from gitpop.llm.ollama_client import OllamaClient
from gitpop.llm.openai_client import OpenAIClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class GenerationRequest:
    """One generation: the diff to describe and the backend to ask."""

    diff_text: str
    provider_config: ProviderConfig


def _local(config: ProviderConfig) -> ProviderClient:
    return OllamaClient(
        model=config.model,
        base_url=config.base_url or DEFAULT_LOCAL_URL,
        request_timeout=config.request_timeout,
    )


def _openai(config: ProviderConfig) -> ProviderClient:
    return OpenAIClient(
        model=config.model,
        api_key=config.credential or "",
        base_url=config.base_url or DEFAULT_OPENAI_URL,
        request_timeout=config.request_timeout,
    )


def _custom(config: ProviderConfig) -> ProviderClient:
    if not config.base_url:
        raise ProviderFailedError("A custom provider needs a base URL")
    return OpenAIClient(
        model=config.model,
        api_key=config.credential or "",
        base_url=config.base_url,
        request_timeout=config.request_timeout,
        name="Custom endpoint",
    )


def _gemini(config: ProviderConfig) -> ProviderClient:
    client = GeminiClient(model=config.model, api_key=config.credential or "", request_timeout=config.request_timeout)
    if config.base_url:
        client.base_url = config.base_url
    return client


def _claude(config: ProviderConfig) -> ProviderClient:
    client = ClaudeClient(model=config.model, api_key=config.credential or "", request_timeout=config.request_timeout)
    if config.base_url:
        client.base_url = config.base_url
    return client


_FACTORIES: Dict[ProviderKind, Callable[[ProviderConfig], ProviderClient]] = {
    ProviderKind.LOCAL: _local,
    ProviderKind.OPENAI_COMPATIBLE: _openai,
    ProviderKind.CUSTOM: _custom,
    ProviderKind.GEMINI: _gemini,
    ProviderKind.CLAUDE: _claude,
}


def create_client(config: ProviderConfig) -> ProviderClient:
    """Instantiate the client for ``config.provider``.

    Raises
    ------
    ProviderAuthError
        If a cloud provider is selected without a credential.
    ProviderFailedError
        If the provider is unknown or its configuration is incomplete.
    """
    factory = _FACTORIES.get(config.provider)
    if factory is None:
        raise ProviderFailedError(f"Unknown AI provider: {config.provider}")
    if config.requires_credential and not config.credential:
        raise ProviderAuthError(f"No API key configured for {config.provider.label}")
    return factory(config)


class ProviderRegistry:
    """Dispatch generation requests, one at a time.

    A request made while another one is still running is rejected with
    :class:`GenerationInProgressError` rather than queued.
    """

    def __init__(self, client_factory: Callable[[ProviderConfig], ProviderClient] = create_client) -> None:
        self._client_factory = client_factory
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def generate(self, request: GenerationRequest) -> str:
        """Return a cleaned commit message for ``request.diff_text``.

        Raises
        ------
        GenerationInProgressError
            If another generation has not finished yet.
        GenerationError
            Any provider failure; nothing is retried.
        """
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgressError("A commit message is already being generated")
        try:
            config = request.provider_config
            client = self._client_factory(config)
            logger.debug("Generating commit message with %r", config)
            raw = client.generate(build_user_prompt(request.diff_text), SYSTEM_PROMPT)
            message = extract_commit_message(raw)
        finally:
            self._lock.release()
        logger.info("Generated commit message with %s (%s)", config.provider.label, config.model)
        return message
