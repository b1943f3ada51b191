"""
Settings persistence for gitpop.

Settings live in a JSON file named ``settings.json`` in the ``~/.gitpop/``
directory of the user's home. The file holds the selected AI provider,
its model and credential, and a few tuning values. A missing file is not
an error: the defaults select a local Ollama server. A malformed file,
or one with wrongly typed values, raises :class:`ConfigError`.

Example::

    {
        "provider": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "api_key": "sk-ant-...",
        "request_timeout": 30,
        "diff_char_budget": 12000
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from gitpop.diff.diff_assembler import DEFAULT_CHAR_BUDGET
from gitpop.llm.base import DEFAULT_REQUEST_TIMEOUT, ProviderConfig, ProviderKind


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings or logging errors in
# environments where the root logger may be closed. When the CLI configures
# logging, it installs its own handlers on the root logger.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


SETTINGS_FILENAME = "settings.json"
DEFAULT_PROVIDER = ProviderKind.LOCAL
DEFAULT_MODEL = "llama3.2"

# Consulted when no api_key is stored in the settings file
API_KEY_ENV_VARS = {
    ProviderKind.OPENAI_COMPATIBLE: "OPENAI_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
    ProviderKind.CLAUDE: "ANTHROPIC_API_KEY",
    ProviderKind.CUSTOM: "GITPOP_API_KEY",
}


class ConfigError(Exception):
    """Raised when the settings file is unreadable or invalid."""

    pass


@dataclass
class Settings:
    """User settings as stored on disk."""

    provider: ProviderKind = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    diff_char_budget: int = DEFAULT_CHAR_BUDGET

    def credential(self) -> Optional[str]:
        """The stored API key, or the provider's environment variable when none is stored."""
        if self.api_key:
            return self.api_key
        env_var = API_KEY_ENV_VARS.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(
            provider=self.provider,
            model=self.model,
            credential=self.credential(),
            base_url=self.base_url,
            request_timeout=self.request_timeout,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "provider": self.provider.value,
            "model": self.model,
            "request_timeout": self.request_timeout,
            "diff_char_budget": self.diff_char_budget,
        }
        if self.api_key:
            data["api_key"] = self.api_key
        if self.base_url:
            data["base_url"] = self.base_url
        return data


def _get_config_directory() -> Path:
    """Return the directory holding the gitpop settings file (``~/.gitpop/``)."""
    return Path.home() / ".gitpop"


def settings_path() -> Path:
    return _get_config_directory() / SETTINGS_FILENAME


def _redacted(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: ("***" if key == "api_key" and value else value) for key, value in data.items()}


def parse_provider(value: Any) -> ProviderKind:
    """Convert a settings identifier such as ``"ollama"`` to a :class:`ProviderKind`."""
    try:
        return ProviderKind(value)
    except ValueError as exc:
        valid = ", ".join(kind.value for kind in ProviderKind)
        raise ConfigError(f"Unknown provider '{value}'. Expected one of: {valid}") from exc


def _validate(data: Dict[str, Any]) -> Settings:
    settings = Settings()

    if "provider" in data:
        settings.provider = parse_provider(data["provider"])
    if "model" in data:
        if not isinstance(data["model"], str) or not data["model"].strip():
            raise ConfigError("'model' must be a non-empty string")
        settings.model = data["model"]
    for key in ("api_key", "base_url"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ConfigError(f"'{key}' must be a string")
    settings.api_key = data.get("api_key") or None
    settings.base_url = data.get("base_url") or None

    if "request_timeout" in data:
        timeout = data["request_timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError("'request_timeout' must be a positive number")
        settings.request_timeout = float(timeout)
    if "diff_char_budget" in data:
        budget = data["diff_char_budget"]
        if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
            raise ConfigError("'diff_char_budget' must be a positive integer")
        settings.diff_char_budget = budget

    if settings.provider is ProviderKind.CUSTOM and not settings.base_url:
        raise ConfigError("'base_url' is required for the custom provider")
    return settings


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load the settings file and return validated :class:`Settings`.

    Parameters
    ----------
    path : Path, optional
        Explicit file to read. Defaults to ``~/.gitpop/settings.json``.

    Returns
    -------
    Settings
        The stored settings, or the defaults if the file does not exist.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid JSON, or holds invalid values.
    """
    config_path = path or settings_path()
    if not config_path.exists():
        logger.debug("No settings file at %s; using defaults", config_path)
        return Settings()

    try:
        content = config_path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse settings file: %s", exc)
        raise ConfigError(f"Invalid settings file {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid settings file {config_path}: expected a JSON object")

    settings = _validate(data)
    logger.debug("Loaded settings from: %s", config_path)
    logger.debug("Settings data: %s", _redacted(data))
    return settings


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Write ``settings`` to disk and return the file path.

    The file is written next to its final location and then moved into
    place, and on POSIX systems it is made readable by the owner only
    because it may contain an API key.

    Raises
    ------
    ConfigError
        If the settings are invalid or the file cannot be written.
    """
    _validate(settings.to_dict())
    config_path = path or settings_path()
    tmp_path = config_path.with_name(config_path.name + ".tmp")
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(settings.to_dict(), indent=2) + "\n", encoding="utf-8")
        if os.name == "posix":
            os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, config_path)
    except OSError as exc:
        logger.error("Failed to write settings file: %s", exc)
        raise ConfigError(f"Could not write settings to {config_path}: {exc}") from exc
    logger.debug("Saved settings to: %s", config_path)
    return config_path
