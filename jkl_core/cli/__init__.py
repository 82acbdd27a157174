"""Click CLI definitions for jkl.

The ``cli`` group, ``main`` entry point and the store commands live
here.  Shared helpers (HelpGroup, settings, the error boundary) are in
``cli.helpers``.

Command groups are split into submodules:
- cli.tui:   the interactive session list and the pane-status popup
- cli.hooks: tmux hook installation and the debug toggle
"""

import json

import click

from jkl_core.cli.helpers import (
    CONTEXT_SETTINGS,
    HelpGroup,
    _log,
    find_editor,
    handle_errors,
    join_words,
    open_store,
    set_overrides,
    settings,
    tmux_id_for,
)
from jkl_core.reconcile import live_pane_map, reconcile
from jkl_core.store import (
    STATUS_CHOICES,
    UNSET,
    ContextStore,
    NotFoundError,
    parse_status,
)
from jkl_core.tmux import NoServerError, TmuxProvider


@click.group(invoke_without_command=True, cls=HelpGroup, context_settings=CONTEXT_SETTINGS)
@click.option("--store", "store_path", default=None, metavar="PATH",
              help="Store file (or set JKL_STORE; default ~/.config/jkl/session_context.json)")
@click.option("-S", "--socket", "socket_path", default=None, metavar="PATH",
              help="tmux server socket (or set JKL_TMUX_SOCKET)")
@click.pass_context
def cli(ctx, store_path: str | None, socket_path: str | None):
    """jkl: status and context for tmux sessions and panes."""
    set_overrides(store_path, socket_path)
    if ctx.invoked_subcommand is None:
        # Late import: tui_cmd is registered by cli/tui.py submodule
        from jkl_core.cli.tui import tui_cmd
        ctx.invoke(tui_cmd)


@cli.command()
@click.argument("session_name", nargs=-1, required=True)
@click.option("--session-id", default=None,
              help="tmux session id ($N) to remember (default: detected inside tmux)")
@click.option("--pane-id", default=None, help="Apply status/context to this pane (%N)")
@click.option("--status", default=None,
              type=click.Choice(STATUS_CHOICES, case_sensitive=False),
              help="New status ('none' clears it)")
@click.option("--context", default=None, metavar="TEXT",
              help="New context text; quote multi-word text ('' clears it)")
@handle_errors
def upsert(session_name: tuple[str, ...], session_id: str | None, pane_id: str | None,
           status: str | None, context: str | None):
    """Create or update the record for SESSION_NAME.

    Only the options given change; everything else keeps its stored
    value.  With --pane-id, status and context go to that pane's record.
    Run inside the tmux session itself, its $N id is recorded too so a
    later tmux rename carries the record along.  --context takes a single
    argument, so quote text that contains spaces.

    \b
    Examples:
      jkl upsert proj --status working
      jkl upsert proj --pane-id %3 --status done --context "tests green"
      jkl upsert proj --context ""        # clear the context
    """
    name = join_words(session_name)
    if not name:
        raise click.UsageError("SESSION_NAME must not be empty")
    status_value = UNSET if status is None else parse_status(status)
    context_value = UNSET if context is None else (context if context.strip() else None)

    if session_id is None:
        session_id = tmux_id_for(name)

    store = open_store()
    if pane_id:
        store.upsert_pane(name, pane_id, status=status_value, context=context_value,
                          session_id=session_id)
        click.echo(f"Updated {name} {pane_id}")
    else:
        store.upsert_session(name, session_id=session_id,
                             status=status_value, context=context_value)
        click.echo(f"Updated {name}")


@cli.command()
@click.argument("target")
@click.argument("new_name", nargs=-1, required=True)
@click.option("--if-exists", is_flag=True, default=False,
              help="Do nothing when TARGET is not a stored session")
@click.option("-q", "--quiet", is_flag=True, default=False, help="No confirmation output")
@handle_errors
def rename(target: str, new_name: tuple[str, ...], if_exists: bool, quiet: bool):
    """Move the record for TARGET to NEW_NAME.

    TARGET is a tmux session id ($N) or the old session name.  This is
    what the session-renamed hook installed by 'jkl hooks install' runs.
    """
    name = join_words(new_name)
    if not name:
        raise click.UsageError("NEW_NAME must not be empty")
    store = open_store()
    try:
        store.rename_target(target, name)
    except NotFoundError:
        if if_exists:
            _log.debug("rename: %s is not tracked, ignoring", target)
            return
        raise
    if not quiet:
        click.echo(f"Renamed {target} -> {name}")


@cli.command()
@click.argument("session_name", nargs=-1, required=True)
@handle_errors
def forget(session_name: tuple[str, ...]):
    """Delete the stored record (and pane records) for SESSION_NAME."""
    name = join_words(session_name)
    record = open_store().forget(name)
    click.echo(f"Forgot {name} ({len(record.panes)} pane record(s))")


@cli.command()
@handle_errors
def prune():
    """Drop pane records whose pane no longer exists in its live session.

    Sessions that are not running keep all of their pane records.
    """
    live = TmuxProvider(settings().tmux_socket).list_sessions()
    removed = open_store().prune_panes(live_pane_map(live))
    click.echo(f"Removed {removed} stale pane record(s)")


def _cell(value) -> str:
    if value is None:
        return "-"
    text = str(value).strip()
    return text or "-"


def _row_json(row) -> dict:
    return {
        "key": row.key,
        "session_name": row.session_name,
        "session_id": row.session_id,
        "live": not row.historical,
        "status": row.status.value if row.status else None,
        "context": row.context,
        "panes": [
            {
                "pane_id": pane.pane_id,
                "live": not pane.historical,
                "status": pane.status.value if pane.status else None,
                "context": pane.context,
            }
            for pane in row.panes
        ],
    }


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Machine-readable output")
@handle_errors
def list_cmd(as_json: bool):
    """Print every session (live first, then historical) with its panes."""
    cfg = settings()
    store = ContextStore.load(cfg.store_path)
    try:
        live = TmuxProvider(cfg.tmux_socket).list_sessions()
    except NoServerError as e:
        click.echo(f"Note: {e}; showing stored sessions only", err=True)
        live = []
    rows = reconcile(live, store)

    if as_json:
        click.echo(json.dumps([_row_json(row) for row in rows], indent=2))
        return
    if not rows:
        click.echo("No sessions.")
        return
    for row in rows:
        suffix = " (historical)" if row.historical else ""
        click.echo(f"{row.session_name}{suffix}  [{_cell(row.status)}]  {_cell(row.context)}")
        for pane in row.panes:
            gone = " (gone)" if pane.historical else ""
            click.echo(f"  {pane.pane_id}{gone}  [{_cell(pane.status)}]  {_cell(pane.context)}")


@cli.command()
@handle_errors
def edit():
    """Open the store file in $EDITOR, then check that it still loads."""
    path = settings().store_path
    if not path.exists():
        ContextStore(path).save()
    editor = find_editor()
    _log.info("edit: %s %s", editor, path)
    click.edit(filename=str(path), editor=editor)
    store = ContextStore.load(path)
    click.echo(f"{path}: {len(store)} session(s)")


# ---------------------------------------------------------------------------
# Import submodules to register their commands on ``cli``.
# This must be at the bottom of the file, after ``cli`` is defined.
# ---------------------------------------------------------------------------
from jkl_core.cli import tui, hooks  # noqa: E402, F401


def main():
    cli()
