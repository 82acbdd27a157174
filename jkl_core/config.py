"""YAML settings for jkl (<home>/config.yaml).

Resolution order for each setting: command-line option, then environment
variable, then config.yaml, then the built-in default.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from jkl_core.errors import JklError
from jkl_core.paths import config_path, configure_logger, default_store_path

_log = configure_logger("jkl.config")

KNOWN_KEYS = ("store_path", "tmux_socket", "refresh_interval")


class ConfigError(JklError):
    """Raised when config.yaml exists but cannot be used."""


@dataclass
class Settings:
    store_path: Path
    tmux_socket: Optional[str] = None
    refresh_interval: float = 0.0


def load_settings(path: Optional[Path] = None) -> dict:
    """Read config.yaml into a plain dict. Missing file means ``{}``."""
    path = path or config_path()
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    for key in data:
        if key not in KNOWN_KEYS:
            _log.warning("ignoring unknown config key %r in %s", key, path)
    return data


def resolve(store: Optional[str] = None, socket: Optional[str] = None,
            path: Optional[Path] = None) -> Settings:
    """Build the effective Settings from explicit values, env vars and config.yaml."""
    data = load_settings(path)

    store_value = store or os.environ.get("JKL_STORE") or data.get("store_path")
    store_path = Path(store_value).expanduser() if store_value else default_store_path()

    tmux_socket = socket or os.environ.get("JKL_TMUX_SOCKET") or data.get("tmux_socket")

    interval = data.get("refresh_interval", 0) or 0
    try:
        refresh_interval = float(interval)
    except (TypeError, ValueError):
        raise ConfigError(f"refresh_interval must be a number, got {interval!r}") from None
    if refresh_interval < 0:
        raise ConfigError("refresh_interval must not be negative")

    return Settings(
        store_path=store_path,
        tmux_socket=str(tmux_socket) if tmux_socket else None,
        refresh_interval=refresh_interval,
    )
