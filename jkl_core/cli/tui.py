"""TUI command for the jkl CLI.

Registers ``tui``, which opens the session list or, with --pane-state,
the one-pane status picker used by the tmux popup binding.
"""

import os

import click

from jkl_core import tmux as tmux_mod
from jkl_core.cli import cli
from jkl_core.cli.helpers import _log, handle_errors, settings
from jkl_core.store import ContextStore


@cli.command("tui")
@click.option("--pane-state", is_flag=True, default=False,
              help="Pick a status for one pane instead of browsing sessions")
@click.option("--session-name", default=None,
              help="Session owning the pane (default: current tmux session)")
@click.option("--session-id", default=None,
              help="tmux id ($N) of that session, recorded with the status")
@click.option("--pane-id", default=None, help="Pane to update (default: $TMUX_PANE)")
@handle_errors
def tui_cmd(pane_state: bool, session_name: str | None, session_id: str | None,
            pane_id: str | None):
    """Browse sessions and panes; Enter switches the tmux client."""
    # Late import: Textual is only needed for the interactive commands
    from jkl_core.tui.app import SessionListApp
    from jkl_core.tui.controller import Browser

    cfg = settings()
    provider = tmux_mod.TmuxProvider(cfg.tmux_socket)
    # A corrupt store is fatal here: there is nothing safe to show
    store = ContextStore.load(cfg.store_path)

    if pane_state:
        if pane_id is None:
            pane_id = os.environ.get("TMUX_PANE")
        if session_name is None and tmux_mod.in_tmux():
            session_name = tmux_mod.get_session_name(cfg.tmux_socket) or None
        if not session_name or not pane_id:
            raise click.UsageError("--pane-state needs --session-name and --pane-id "
                                   "(or must run inside tmux)")
        browser = Browser.for_pane(provider, store, session_name, pane_id,
                                   session_id=session_id)
    else:
        browser = Browser.open(provider, store)

    app = SessionListApp(browser, refresh_interval=cfg.refresh_interval)
    switched = app.run()
    _log.info("tui exited (switched_to=%s)", switched)
