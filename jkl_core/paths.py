"""Centralized path management for jkl.

Everything jkl writes lives under one per-user directory
(``$JKL_HOME`` or ``~/.config/jkl/``):

- session_context.json  - the metadata store (default location)
- config.yaml           - optional settings
- debug/jkl.log         - rotating command/TUI log
- debug-enabled         - marker file switching the log to DEBUG level
"""

import logging
import os
import shlex
import subprocess
from pathlib import Path

STORE_FILENAME = "session_context.json"
CONFIG_FILENAME = "config.yaml"


def jkl_home() -> Path:
    """Return the jkl home directory ($JKL_HOME or ~/.config/jkl/)."""
    override = os.environ.get("JKL_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "jkl"


def default_store_path() -> Path:
    """Return the default store file path (not created here)."""
    return jkl_home() / STORE_FILENAME


def config_path() -> Path:
    return jkl_home() / CONFIG_FILENAME


def debug_dir() -> Path:
    """Return the debug/logs directory (<home>/debug/), creating it."""
    d = jkl_home() / "debug"
    d.mkdir(parents=True, exist_ok=True)
    return d


def command_log_file() -> Path:
    return debug_dir() / "jkl.log"


def debug_enabled() -> bool:
    """Check if debug logging is on ($JKL_DEBUG or the marker file)."""
    if os.environ.get("JKL_DEBUG"):
        return True
    return (jkl_home() / "debug-enabled").exists()


def set_debug(enabled: bool = True) -> None:
    """Enable or disable debug logging for later invocations."""
    marker = jkl_home() / "debug-enabled"
    if enabled:
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()
    elif marker.exists():
        marker.unlink()


def configure_logger(name: str, max_bytes: int = 10_000_000) -> logging.Logger:
    """Configure a logger that writes to the shared rotating log file.

    Args:
        name: Logger name (e.g., "jkl.tui")
        max_bytes: Maximum log file size before rotation (default 10MB)

    Returns:
        Configured logger instance
    """
    from logging.handlers import RotatingFileHandler

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    try:
        handler: logging.Handler = RotatingFileHandler(
            command_log_file(),
            maxBytes=max_bytes,
            backupCount=1,
        )
    except OSError:
        # Read-only home or similar: run without a log file
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(handler)
    logger.propagate = False

    if debug_enabled():
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    return logger


_shell_log = configure_logger("jkl.shell")


def run_shell_logged(cmd: list[str], prefix: str = "shell", **kwargs) -> subprocess.CompletedProcess:
    """Run a command, logging it before execution and on failure.

    Args:
        cmd: Command list to run
        prefix: Prefix for log entries (e.g. "tmux")
        **kwargs: Passed to subprocess.run

    Returns:
        CompletedProcess result
    """
    cmd_str = shlex.join(cmd)
    _shell_log.debug("%s: %s", prefix, cmd_str)
    result = subprocess.run(cmd, **kwargs)
    if result.returncode != 0:
        _shell_log.warning("%s failed (rc=%s): %s", prefix, result.returncode, cmd_str)
    return result
