"""Configuration management for radiomap."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from radiomap.api import BASE_URL
from radiomap.exceptions import ConfigError
from radiomap.player import LOAD_TIMEOUT, RETRY_DELAY
from radiomap.store import DEFAULT_INITIAL_LIMIT

CONFIG_DIR = Path.home() / ".config" / "radiomap"
CONFIG_FILE = CONFIG_DIR / "config.json"
DATA_DIR = Path.home() / ".local" / "share" / "radiomap"


@dataclass
class Config:
    """Application configuration."""

    api_url: str = BASE_URL
    initial_limit: int = DEFAULT_INITIAL_LIMIT
    load_timeout: float = LOAD_TIMEOUT
    retry_delay: float = RETRY_DELAY
    data_dir: str = str(DATA_DIR)
    user_agent: str = ""

    @classmethod
    def load(cls) -> Config:
        """Load configuration from disk, returning defaults if not found."""
        if not CONFIG_FILE.exists():
            return cls()
        try:
            data = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"Failed to read config: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Failed to read config: expected a JSON object")

        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in data.items() if k in known}).validated()
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config: {e}") from e

    def validated(self) -> Config:
        """Coerce field types, raising ValueError on bad values."""
        self.api_url = str(self.api_url)
        self.initial_limit = int(self.initial_limit)
        self.load_timeout = float(self.load_timeout)
        self.retry_delay = float(self.retry_delay)
        self.data_dir = str(self.data_dir)
        self.user_agent = str(self.user_agent or "")
        if self.initial_limit <= 0:
            raise ValueError("initial_limit must be positive")
        if self.load_timeout <= 0 or self.retry_delay < 0:
            raise ValueError("timeouts must be positive")
        return self

    def save(self) -> None:
        """Save configuration to disk."""
        try:
            CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
            CONFIG_FILE.write_text(
                json.dumps(asdict(self), indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise ConfigError(f"Failed to write config: {e}") from e
