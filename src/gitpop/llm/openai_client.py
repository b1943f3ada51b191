"""
Client for OpenAI-style chat completion endpoints.

Used both for OpenAI itself and for any custom endpoint that speaks the
same ``/chat/completions`` protocol (LM Studio, vLLM, OpenRouter, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from gitpop.llm.base import (
    DEFAULT_OPENAI_URL,
    DEFAULT_REQUEST_TIMEOUT,
    SYSTEM_PROMPT,
    ProviderClient,
    extract_text,
    post_json,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def chat_completions_url(base_url: str) -> str:
    """Return the chat completions endpoint for ``base_url``.

    A URL that already points at ``/chat/completions`` is used verbatim.
    """
    if base_url.endswith("/chat/completions"):
        return base_url
    return f"{base_url.rstrip('/')}/chat/completions"


@dataclass
class OpenAIClient(ProviderClient):
    """Bearer-authenticated client for an OpenAI-compatible API."""

    model: str
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_OPENAI_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_tokens: Optional[int] = None
    name: str = "OpenAI"

    def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = post_json(
            chat_completions_url(self.base_url),
            payload,
            self.name,
            timeout=self.request_timeout,
            headers=headers,
        )
        return extract_text(data, ["choices", 0, "message", "content"], self.name)
