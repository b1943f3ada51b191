"""
Configuration loading for gitpop.

Provides a small JSON settings store located in the user's home
directory. See :mod:`gitpop.config.loader` for implementation details.
"""

from .loader import ConfigError, Settings, load_settings, save_settings  # noqa: F401
