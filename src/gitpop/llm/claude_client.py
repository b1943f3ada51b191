"""Client for the Anthropic Messages API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gitpop.llm.base import (
    DEFAULT_REQUEST_TIMEOUT,
    SYSTEM_PROMPT,
    MalformedResponseError,
    ProviderClient,
    post_json,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


ANTHROPIC_API_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 1024


@dataclass
class ClaudeClient(ProviderClient):
    """Claude client authenticated with an ``x-api-key`` header."""

    model: str
    api_key: str = field(repr=False)
    base_url: str = ANTHROPIC_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_tokens: int = MAX_TOKENS
    name: str = "Anthropic"

    def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        data = post_json(
            f"{self.base_url.rstrip('/')}/messages",
            payload,
            self.name,
            timeout=self.request_timeout,
            headers=headers,
        )
        blocks = data.get("content")
        if isinstance(blocks, list):
            # The first text block holds the answer; other block types are skipped
            for block in blocks:
                if isinstance(block, dict) and block.get("type", "text") == "text" and isinstance(block.get("text"), str):
                    return block["text"]
        raise MalformedResponseError("Unexpected response structure from Anthropic")
