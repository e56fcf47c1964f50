"""
Centralized environment configuration.

Values are layered, later sources overriding earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Dictionary-like view over the layered environment, with default values.
    """

    def __init__(self, root: Path | None = None):
        self._root = root or Path(__file__).parent.parent.parent
        self._config: dict[str, str | None] = {}
        self._load_config()

    def _load_config(self):
        example_path = self._root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = self._root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")
        return self._config[key]

    def __contains__(self, key) -> bool:
        return key in self._config

    def get(self, key, default=None):
        return self._config.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        """Stripped string value; empty values fall back to ``default``."""
        return (self._config.get(key) or "").strip() or default

    def get_int(self, key: str, default: int) -> int:
        return int(self.get_str(key) or default)

    def get_float(self, key: str, default: float) -> float:
        return float(self.get_str(key) or default)

    def get_bool(self, key: str, default: bool) -> bool:
        raw = self.get_str(key)
        if not raw:
            return default
        return raw.lower() in {"1", "true", "yes", "on"}

    def reload(self):
        """
        Reload configuration from files and environment.
        Useful for testing or when configuration files change.
        """
        self._config.clear()
        self._load_config()
        logger.info("Configuration reloaded")


config = EnvironConfig()
