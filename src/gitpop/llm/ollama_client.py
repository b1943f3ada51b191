"""
Client for interacting with a local Ollama server.

This client wraps HTTP requests to the Ollama REST API. Text generation
goes through the ``/api/generate`` endpoint; installed models are listed
through ``/api/tags``. No credential is involved. A server that is not
running surfaces as :class:`~gitpop.llm.base.ProviderUnreachableError`
so the caller can suggest starting it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from gitpop.llm.base import (
    DEFAULT_LOCAL_URL,
    DEFAULT_REQUEST_TIMEOUT,
    SYSTEM_PROMPT,
    MalformedResponseError,
    ProviderClient,
    get_json,
    post_json,
)


logger = logging.getLogger(__name__)
# Attach a null handler to avoid errors when the root logger is missing a
# stream. Messages will still propagate to the root logger if configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass
class OllamaClient(ProviderClient):
    """Client for interacting with an Ollama server.

    Parameters
    ----------
    model : str
        Name of the model to use for generation, e.g. ``"llama3.2"``.
    base_url : str, optional
        Base URL of the Ollama server including the port. Defaults to
        ``http://localhost:11434``.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests. Defaults to 30 seconds.
    max_tokens : int, optional
        Maximum number of tokens to generate. If provided, passed via
        the ``options`` payload.
    """

    model: str
    base_url: str = DEFAULT_LOCAL_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_tokens: Optional[int] = None
    name: str = "Ollama"

    def _endpoint(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def generate(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Generate a completion from the model.

        Parameters
        ----------
        prompt : str
            The prompt to send to the model.
        system : str, optional
            System instructions sent alongside the prompt.

        Returns
        -------
        str
            The generated response text, unprocessed.

        Raises
        ------
        GenerationError
            If the request fails or the server returns an error.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "system": system,
            "stream": False,
        }
        # Additional options
        options: Dict[str, Any] = {}
        if self.max_tokens is not None:
            options["num_predict"] = self.max_tokens
        if options:
            payload["options"] = options

        data = post_json(self._endpoint("/api/generate"), payload, self.name, timeout=self.request_timeout)
        # The generate endpoint returns a top-level 'response' field when
        # stream=False. Chat-shaped replies carry 'message.content' instead.
        if isinstance(data.get("response"), str):
            return data["response"]
        message = data.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        raise MalformedResponseError("Unexpected response structure from Ollama")

    def list_models(self) -> List[str]:
        """Return the names of the models installed on the server."""
        data = get_json(self._endpoint("/api/tags"), self.name, timeout=self.request_timeout)
        models = data.get("models")
        if not isinstance(models, list):
            raise MalformedResponseError("Unexpected response structure from Ollama")
        names = [entry.get("name") for entry in models if isinstance(entry, dict)]
        return [name for name in names if isinstance(name, str) and name]
