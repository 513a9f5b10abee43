"""Runtime configuration for the writing sprint host."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = Path("~/.config/writing-sprints/config.json")
DEFAULT_STORE_DIR = "~/.cache/writing-sprints"
LOG_FILE_NAME = "writing-sprints.log"


def _expand(raw: str | os.PathLike[str]) -> Path:
    return Path(os.path.expanduser(raw)).resolve()


@dataclass(frozen=True)
class Config:
    """Runtime configuration loaded from config.json."""

    store_dir: Path
    log_file: Path
    poll_interval_seconds: float = 5.0
    history_limit: int = 20

    @classmethod
    def from_dict(cls, payload: dict) -> Config:
        """Create a Config object from a raw dictionary.

        Raises:
            ConfigError: A value has the wrong type or is out of range
        """
        if not isinstance(payload, dict):
            raise ConfigError("Config must be a JSON object")

        try:
            store_dir = _expand(payload.get("store_dir", DEFAULT_STORE_DIR))
            log_file_raw = payload.get("log_file")
            log_file = _expand(log_file_raw) if log_file_raw else store_dir / LOG_FILE_NAME
            poll_interval_seconds = float(payload.get("poll_interval_seconds", 5.0))
            history_limit = int(payload.get("history_limit", 20))
        except (TypeError, ValueError) as err:
            raise ConfigError(f"Invalid config value: {err}") from err

        if poll_interval_seconds <= 0:
            raise ConfigError(
                f"poll_interval_seconds must be positive, got {poll_interval_seconds}"
            )
        if history_limit <= 0:
            raise ConfigError(f"history_limit must be positive, got {history_limit}")

        return cls(
            store_dir=store_dir,
            log_file=log_file,
            poll_interval_seconds=poll_interval_seconds,
            history_limit=history_limit,
        )


def load_config(path: Path | None = None) -> Config:
    """Load configuration from the provided path.

    Args:
        path: Explicit config file, which must exist. When None, the default
            location is used if present and built-in defaults otherwise.

    Raises:
        ConfigError: The file is missing, unreadable or invalid
    """
    if path is None:
        default_path = _expand(DEFAULT_CONFIG_PATH)
        if not default_path.exists():
            return Config.from_dict({})
        path = default_path

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as err:
        raise ConfigError(f"Config file not found: {path}") from err
    except (OSError, json.JSONDecodeError) as err:
        raise ConfigError(f"Failed to read config {path}: {err}") from err
    return Config.from_dict(data)
