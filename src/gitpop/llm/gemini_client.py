"""Client for the Google Gemini ``generateContent`` API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from gitpop.llm.base import (
    DEFAULT_REQUEST_TIMEOUT,
    SYSTEM_PROMPT,
    ProviderClient,
    extract_text,
    post_json,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass
class GeminiClient(ProviderClient):
    """Gemini client. The API key travels in a header, never in the URL."""

    model: str
    api_key: str = field(repr=False)
    base_url: str = GEMINI_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    name: str = "Gemini"

    def _endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"

    def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        payload: Dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        data = post_json(
            self._endpoint(),
            payload,
            self.name,
            timeout=self.request_timeout,
            headers={"x-goog-api-key": self.api_key},
        )
        return extract_text(data, ["candidates", 0, "content", "parts", 0, "text"], self.name)
