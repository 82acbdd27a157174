"""What the session manager reports right now.

These values are rebuilt on every refresh and never persisted.  Anything
that can enumerate sessions and switch the client implements
:class:`LiveStateProvider`; the tmux adapter lives in ``jkl_core.tmux``.
"""

from dataclasses import dataclass, field
from typing import Protocol, Sequence


@dataclass(frozen=True)
class LivePane:
    pane_id: str
    active: bool = False
    width: int = 0
    height: int = 0
    window_index: int = 0
    pane_index: int = 0
    command: str = ""

    def sort_key(self) -> tuple:
        return (self.window_index, self.pane_index, id_number(self.pane_id), self.pane_id)


@dataclass(frozen=True)
class LiveSession:
    session_id: str
    name: str
    panes: tuple[LivePane, ...] = field(default_factory=tuple)
    attached: bool = False

    def sort_key(self) -> tuple:
        """Order by tmux's own creation order ($N), then by name."""
        return (id_number(self.session_id), self.name)


def id_number(ident: str) -> float:
    """Numeric part of a tmux id like ``$3`` or ``%12``; unparsable sorts last."""
    digits = ident.lstrip("$%@")
    return int(digits) if digits.isdigit() else float("inf")


class LiveStateProvider(Protocol):
    def list_sessions(self) -> Sequence[LiveSession]:
        """Return every running session with its panes.

        Raises NoServerError when the session manager cannot be reached.
        """
        ...

    def switch_client(self, target: str) -> None:
        """Point the attached client at a session id or pane id."""
        ...
