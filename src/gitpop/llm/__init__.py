"""
Language model integration for gitpop.

This package contains one HTTP client per supported backend (a local
Ollama server, OpenAI-compatible endpoints, Gemini and Claude), the
post-processing that extracts a clean commit message from a model reply,
and the :class:`ProviderRegistry` that ties them together behind a single
``generate`` call.
"""

from .base import (  # noqa: F401
    GenerationError,
    GenerationInProgressError,
    MalformedResponseError,
    ProviderAuthError,
    ProviderConfig,
    ProviderFailedError,
    ProviderKind,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnreachableError,
)
from .ollama_client import OllamaClient  # noqa: F401
from .registry import GenerationRequest, ProviderRegistry, create_client  # noqa: F401
