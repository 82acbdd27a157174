"""Shared helpers for the jkl CLI package.

HelpGroup, the per-invocation settings overrides, store loading and the
error boundary that turns JklError into a one-line message and exit 1.
"""

import functools
import os
import shutil

import click

from jkl_core import config
from jkl_core import tmux as tmux_mod
from jkl_core.errors import JklError
from jkl_core.paths import configure_logger
from jkl_core.store import ContextStore

_log = configure_logger("jkl.cli")

# Shared Click settings: make -h and --help both work everywhere
CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

# Set by the cli() group callback via set_overrides()
_store_override: str | None = None
_socket_override: str | None = None


def set_overrides(store: str | None, socket: str | None) -> None:
    """Record --store/--socket given on the top-level group."""
    global _store_override, _socket_override
    _store_override = store
    _socket_override = socket


class HelpGroup(click.Group):
    """Click Group that treats 'help' as an alias for --help everywhere.

    ``group_class = type`` makes child groups (``jkl hooks``) inherit it.
    """

    group_class = type

    def resolve_command(self, ctx, args):
        if args and args[0] == "help":
            if super().get_command(ctx, "help") is not None:
                return super().resolve_command(ctx, args)
            args = ["--help"] + args[1:]
        cmd_name, cmd, remaining = super().resolve_command(ctx, args)
        # 'jkl upsert help' -> 'jkl upsert --help'
        if (remaining and remaining[0] == "help"
                and cmd is not None and not isinstance(cmd, click.Group)):
            remaining = ["--help"] + remaining[1:]
        return cmd_name, cmd, remaining


def handle_errors(f):
    """Report JklError as ``Error: <message>`` on stderr and exit 1."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except JklError as e:
            _log.warning("%s failed: %s", f.__name__, e)
            raise click.ClickException(str(e)) from e
    return wrapper


def settings() -> config.Settings:
    return config.resolve(store=_store_override, socket=_socket_override)


def open_store() -> ContextStore:
    """Load the store named by the effective settings."""
    return ContextStore.load(settings().store_path)


def join_words(words: tuple[str, ...]) -> str:
    """Join a variadic argument back into one string (``jkl upsert my project``)."""
    return " ".join(words).strip()


def find_editor() -> str:
    """Return the user's preferred editor."""
    editor = os.environ.get("EDITOR")
    if editor:
        return editor
    for candidate in ("vim", "vi", "nano"):
        if shutil.which(candidate):
            return candidate
    return "vi"


def tmux_id_for(session_name: str) -> str | None:
    """tmux id of *session_name* when this command runs inside that session."""
    if not tmux_mod.in_tmux():
        return None
    try:
        session_id, current = tmux_mod.current_session(settings().tmux_socket)
    except JklError as e:
        _log.info("could not query the current tmux session: %s", e)
        return None
    return session_id if current == session_name and session_id else None
