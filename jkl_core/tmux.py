"""Tmux integration for jkl: enumerate sessions/panes, switch, install hooks."""

import os
import shutil
from collections import defaultdict
from typing import Optional

from jkl_core.errors import JklError
from jkl_core.live import LivePane, LiveSession
from jkl_core.paths import configure_logger, run_shell_logged

_log = configure_logger("jkl.tmux")

_SESSION_FORMAT = "#{session_id}\t#{session_name}\t#{session_attached}"
_PANE_FORMAT = ("#{session_id}\t#{pane_id}\t#{pane_active}\t#{pane_width}\t"
                "#{pane_height}\t#{window_index}\t#{pane_index}\t#{pane_current_command}")

# Key bound under the tmux prefix by ``jkl hooks install``
PANE_STATE_KEY = "S"


class TmuxError(JklError):
    """A tmux command failed."""


class NoServerError(TmuxError):
    """tmux is not installed or no server is running."""


def _tmux_cmd(*args: str, socket_path: str | None = None) -> list[str]:
    """Build a tmux command with optional custom socket.

    If socket_path is given, uses it.  Otherwise checks JKL_TMUX_SOCKET.
    """
    cmd = ["tmux"]
    sp = socket_path or os.environ.get("JKL_TMUX_SOCKET")
    if sp:
        cmd.extend(["-S", sp])
    cmd.extend(args)
    return cmd


def has_tmux() -> bool:
    """Check if tmux is installed."""
    return shutil.which("tmux") is not None


def in_tmux() -> bool:
    """Check if we're currently inside a tmux session."""
    return bool(os.environ.get("TMUX"))


def _run(*args: str, socket_path: str | None = None) -> str:
    """Run a tmux query and return stdout, mapping failures to TmuxError."""
    try:
        result = run_shell_logged(
            _tmux_cmd(*args, socket_path=socket_path),
            prefix="tmux", capture_output=True, text=True,
        )
    except FileNotFoundError:
        raise NoServerError("tmux is not installed") from None
    if result.returncode != 0:
        message = (result.stderr or "").strip() or f"tmux {args[0]} failed"
        if "no server running" in message or "error connecting" in message:
            raise NoServerError(message)
        raise TmuxError(message)
    return result.stdout


def _int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def parse_sessions(output: str) -> list[tuple[str, str, bool]]:
    """Parse ``list-sessions`` output into (id, name, attached) triples."""
    sessions = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        session_id, name = parts[0].strip(), parts[1].strip()
        if not session_id or not name:
            continue
        attached = len(parts) > 2 and parts[2].strip() not in ("", "0")
        sessions.append((session_id, name, attached))
    return sessions


def parse_panes(output: str) -> dict[str, list[LivePane]]:
    """Parse ``list-panes -a`` output into panes grouped by session id."""
    panes: dict[str, list[LivePane]] = defaultdict(list)
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        session_id, pane_id = parts[0].strip(), parts[1].strip()
        if not session_id or not pane_id:
            continue
        parts += [""] * (8 - len(parts))
        panes[session_id].append(LivePane(
            pane_id=pane_id,
            active=parts[2].strip() == "1",
            width=_int(parts[3]),
            height=_int(parts[4]),
            window_index=_int(parts[5]),
            pane_index=_int(parts[6]),
            command=parts[7].strip(),
        ))
    return panes


class TmuxProvider:
    """LiveStateProvider backed by the tmux CLI."""

    def __init__(self, socket_path: Optional[str] = None):
        self.socket_path = socket_path

    def list_sessions(self) -> list[LiveSession]:
        sessions = parse_sessions(
            _run("list-sessions", "-F", _SESSION_FORMAT, socket_path=self.socket_path))
        panes = parse_panes(
            _run("list-panes", "-a", "-F", _PANE_FORMAT, socket_path=self.socket_path))
        result = [
            LiveSession(
                session_id=session_id,
                name=name,
                panes=tuple(sorted(panes.get(session_id, []), key=LivePane.sort_key)),
                attached=attached,
            )
            for session_id, name, attached in sessions
        ]
        _log.debug("list_sessions: %d session(s)", len(result))
        return result

    def switch_client(self, target: str) -> None:
        _run("switch-client", "-t", target, socket_path=self.socket_path)
        _log.info("switched client to %s", target)


def get_session_name(socket_path: str | None = None) -> str:
    """Get the current tmux session name (must be called from within tmux).

    Targets $TMUX_PANE when set so background callers get the right session.
    """
    pane = os.environ.get("TMUX_PANE")
    if pane:
        out = _run("display-message", "-p", "-t", pane, "#{session_name}",
                   socket_path=socket_path)
    else:
        out = _run("display-message", "-p", "#{session_name}", socket_path=socket_path)
    return out.strip()


def current_session(socket_path: str | None = None) -> tuple[str, str]:
    """Return (session_id, session_name) of the session this process runs in.

    Targets $TMUX_PANE when set, like get_session_name.
    """
    pane = os.environ.get("TMUX_PANE")
    target = ["-t", pane] if pane else []
    out = _run("display-message", "-p", *target, "#{session_id}\t#{session_name}",
               socket_path=socket_path)
    session_id, _, name = out.rstrip("\n").partition("\t")
    return session_id, name


def rename_hook_command(executable: str = "jkl") -> str:
    """tmux command run by the session-renamed hook.

    ``#{q:...}`` makes tmux shell-quote the value, so ids like ``$3`` and
    names with spaces reach jkl intact.
    """
    return (f"run-shell -b \"{executable} rename --if-exists --quiet "
            f"#{{q:session_id}} #{{q:session_name}}\"")


def pane_state_popup_args(executable: str = "jkl") -> list[str]:
    """tmux command (as argv) opening the pane status picker for the current pane."""
    return [
        "display-popup", "-E", "-w", "40", "-h", "10",
        f"{executable} tui --pane-state "
        f"--session-name #{{q:session_name}} --session-id #{{q:session_id}} "
        f"--pane-id #{{pane_id}}",
    ]


def install_hooks(executable: str = "jkl", socket_path: str | None = None) -> None:
    """Register the global rename hook and the pane-status key binding.

    tmux hooks and bindings are server-wide, so this is idempotent and has
    to be repeated after a server restart (e.g. from ~/.tmux.conf).
    """
    _run("set-hook", "-g", "session-renamed", rename_hook_command(executable),
         socket_path=socket_path)
    _run("bind-key", "-T", "prefix", PANE_STATE_KEY, *pane_state_popup_args(executable),
         socket_path=socket_path)
    _log.info("installed tmux hooks for %s", executable)
