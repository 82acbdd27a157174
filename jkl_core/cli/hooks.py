"""tmux integration and debugging commands for the jkl CLI."""

import shlex
import shutil
import sys

import click

from jkl_core import paths
from jkl_core import tmux as tmux_mod
from jkl_core.cli import cli
from jkl_core.cli.helpers import handle_errors, settings


def _executable() -> str:
    """How tmux should invoke jkl: the installed script, else this interpreter."""
    found = shutil.which("jkl")
    if found:
        return shlex.quote(found)
    return f"{shlex.quote(sys.executable)} -m jkl_core"


@cli.group()
def hooks():
    """Install the tmux hooks jkl relies on."""
    pass


@hooks.command("install")
@click.option("--print", "print_only", is_flag=True, default=False,
              help="Print the tmux commands instead of running them")
@handle_errors
def hooks_install(print_only: bool):
    """Register the session-renamed hook and the prefix-S status popup.

    Hooks live in the tmux server, so run this again after restarting
    tmux (or put the printed lines in ~/.tmux.conf).
    """
    exe = _executable()
    if print_only:
        click.echo(f"set-hook -g session-renamed {shlex.quote(tmux_mod.rename_hook_command(exe))}")
        popup = tmux_mod.pane_state_popup_args(exe)
        click.echo(f"bind-key -T prefix {tmux_mod.PANE_STATE_KEY} "
                   + " ".join(shlex.quote(arg) for arg in popup))
        return
    tmux_mod.install_hooks(exe, socket_path=settings().tmux_socket)
    click.echo(f"Installed session-renamed hook and prefix-{tmux_mod.PANE_STATE_KEY} popup.")


@cli.command()
@click.argument("state", type=click.Choice(["on", "off"]), required=False)
def debug(state: str | None):
    """Turn debug logging on or off (no argument shows the current state)."""
    if state is not None:
        paths.set_debug(state == "on")
    status = "on" if paths.debug_enabled() else "off"
    click.echo(f"Debug logging is {status} (log: {paths.command_log_file()})")
