"""View model for the session list, independent of any terminal library.

:class:`BrowserState` owns the reconciled rows, the filter text, the
expand/collapse flags and the selection, and moves between
:class:`Mode` values through the ``TRANSITIONS`` table.  Handlers that
need the outside world (switching tmux, writing the store, re-reading
live state) return an *effect* for the controller to carry out.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from jkl_core.reconcile import ReconciledPaneRow, ReconciledRow
from jkl_core.store import AgentStatus

STATUS_CHOICES: tuple[AgentStatus, ...] = (
    AgentStatus.WORKING,
    AgentStatus.WAITING,
    AgentStatus.IDLE,
    AgentStatus.DONE,
)


class Mode(Enum):
    NORMAL = "normal"
    SEARCHING = "searching"
    PANE_STATE_SELECT = "pane_state_select"
    EXITING = "exiting"


class Action(Enum):
    SEARCH = "search"
    TYPE = "type"
    BACKSPACE = "backspace"
    COMMIT = "commit"
    CANCEL = "cancel"
    QUIT = "quit"
    UP = "up"
    DOWN = "down"
    TOGGLE = "toggle"
    ACTIVATE = "activate"
    REFRESH = "refresh"
    FORGET = "forget"


# Effects requested from the controller

@dataclass(frozen=True)
class SwitchTo:
    target: str


@dataclass(frozen=True)
class SetPaneStatus:
    session_name: str
    pane_id: str
    status: AgentStatus


@dataclass(frozen=True)
class Forget:
    session_name: str


@dataclass(frozen=True)
class Refresh:
    pass


Effect = Union[SwitchTo, SetPaneStatus, Forget, Refresh]

# (mode, action) -> (handler name or None, next mode or None).
# A None next mode leaves the mode to the handler.
TRANSITIONS: dict[tuple[Mode, Action], tuple[Optional[str], Optional[Mode]]] = {
    (Mode.NORMAL, Action.SEARCH): ("_begin_search", Mode.SEARCHING),
    (Mode.NORMAL, Action.CANCEL): ("_cancel_normal", None),
    (Mode.NORMAL, Action.QUIT): (None, Mode.EXITING),
    (Mode.NORMAL, Action.UP): ("_move_up", None),
    (Mode.NORMAL, Action.DOWN): ("_move_down", None),
    (Mode.NORMAL, Action.TOGGLE): ("_toggle", None),
    (Mode.NORMAL, Action.ACTIVATE): ("_activate", None),
    (Mode.NORMAL, Action.REFRESH): ("_refresh", None),
    (Mode.NORMAL, Action.FORGET): ("_forget", None),

    (Mode.SEARCHING, Action.TYPE): ("_type", None),
    (Mode.SEARCHING, Action.BACKSPACE): ("_backspace", None),
    (Mode.SEARCHING, Action.UP): ("_move_up", None),
    (Mode.SEARCHING, Action.DOWN): ("_move_down", None),
    (Mode.SEARCHING, Action.COMMIT): (None, Mode.NORMAL),
    (Mode.SEARCHING, Action.CANCEL): ("_clear_filter", Mode.NORMAL),
    (Mode.SEARCHING, Action.QUIT): (None, Mode.EXITING),

    (Mode.PANE_STATE_SELECT, Action.UP): ("_choice_up", None),
    (Mode.PANE_STATE_SELECT, Action.DOWN): ("_choice_down", None),
    (Mode.PANE_STATE_SELECT, Action.ACTIVATE): ("_confirm_choice", None),
    (Mode.PANE_STATE_SELECT, Action.CANCEL): (None, Mode.EXITING),
    (Mode.PANE_STATE_SELECT, Action.QUIT): (None, Mode.EXITING),
}


def fuzzy_match(query: str, text: str) -> bool:
    """True if the characters of *query* appear in order in *text* (case-insensitive)."""
    it = iter(text.lower())
    return all(ch in it for ch in query.lower())


def filter_rows(rows: Iterable[ReconciledRow], query: str) -> list[ReconciledRow]:
    """Rows whose session name fuzzy-matches *query*, in their original order."""
    query = query.strip()
    if not query:
        return list(rows)
    return [row for row in rows if fuzzy_match(query, row.session_name)]


@dataclass(frozen=True)
class VisibleRow:
    """One line of the list: a session, or a pane under an expanded session."""

    row: ReconciledRow
    pane: Optional[ReconciledPaneRow] = None

    @property
    def ident(self) -> tuple[str, Optional[str]]:
        return (self.row.key, self.pane.pane_id if self.pane else None)

    @property
    def is_pane(self) -> bool:
        return self.pane is not None


@dataclass(frozen=True)
class Snapshot:
    """Everything a renderer needs for one frame."""

    rows: tuple[VisibleRow, ...]
    selected: Optional[int]
    mode: Mode
    filter_text: str
    expanded: frozenset
    message: str = ""
    choices: tuple[AgentStatus, ...] = ()
    choice_index: int = 0
    pane_target: Optional[tuple[str, str]] = None


class BrowserState:
    def __init__(self, rows: Sequence[ReconciledRow] = ()):
        self.mode = Mode.NORMAL
        self.filter_text = ""
        self.expanded: set[str] = set()
        self.message = ""
        self.pane_target: Optional[tuple[str, str]] = None
        self.choice_index = 0
        self._rows: list[ReconciledRow] = list(rows)
        self._visible: list[VisibleRow] = []
        self._selected_ident: Optional[tuple[str, Optional[str]]] = None
        self._selected_index: Optional[int] = None
        self._rebuild(fallback="first")

    @classmethod
    def for_pane(cls, session_name: str, pane_id: str,
                 current: Optional[AgentStatus] = None) -> "BrowserState":
        """State for the popup picker: choose a status for one given pane."""
        state = cls()
        state.mode = Mode.PANE_STATE_SELECT
        state.pane_target = (session_name, pane_id)
        if current in STATUS_CHOICES:
            state.choice_index = STATUS_CHOICES.index(current)
        return state

    # -- queries -------------------------------------------------------------

    @property
    def rows(self) -> list[ReconciledRow]:
        return list(self._rows)

    @property
    def visible(self) -> list[VisibleRow]:
        return list(self._visible)

    @property
    def selected_index(self) -> Optional[int]:
        return self._selected_index

    @property
    def selected(self) -> Optional[VisibleRow]:
        if self._selected_index is None:
            return None
        return self._visible[self._selected_index]

    def snapshot(self) -> Snapshot:
        picking = self.mode == Mode.PANE_STATE_SELECT
        return Snapshot(
            rows=tuple(self._visible),
            selected=self._selected_index,
            mode=self.mode,
            filter_text=self.filter_text,
            expanded=frozenset(self.expanded),
            message=self.message,
            choices=STATUS_CHOICES if picking else (),
            choice_index=self.choice_index,
            pane_target=self.pane_target,
        )

    # -- dispatch ------------------------------------------------------------

    def dispatch(self, action: Action, text: str = "") -> Optional[Effect]:
        """Apply *action* in the current mode; unknown pairs are ignored."""
        entry = TRANSITIONS.get((self.mode, action))
        if entry is None:
            return None
        handler_name, next_mode = entry
        self.message = ""
        effect = None
        if handler_name is not None:
            handler = getattr(self, handler_name)
            effect = handler(text) if action == Action.TYPE else handler()
        if next_mode is not None:
            self.mode = next_mode
        return effect

    def finish(self) -> None:
        """Enter the terminal state (after a switch or a pane status write)."""
        self.mode = Mode.EXITING

    def replace_rows(self, rows: Sequence[ReconciledRow]) -> None:
        """Swap in freshly reconciled rows, keeping filter, expansion and selection."""
        self._rows = list(rows)
        keys = {row.key for row in self._rows}
        self.expanded &= keys
        self._rebuild(fallback="clamp")

    # -- internals -----------------------------------------------------------

    def _rebuild(self, fallback: str) -> None:
        visible = []
        for row in filter_rows(self._rows, self.filter_text):
            visible.append(VisibleRow(row))
            if row.key in self.expanded:
                visible.extend(VisibleRow(row, pane) for pane in row.panes)
        self._visible = visible

        if not visible:
            self._selected_index = None
            self._selected_ident = None
            return
        index = self._find(self._selected_ident)
        if index is None and self._selected_ident and self._selected_ident[1] is not None:
            # Selected pane went away (or got collapsed): fall back to its session
            index = self._find((self._selected_ident[0], None))
        if index is None:
            if fallback == "clamp" and self._selected_index is not None:
                index = min(self._selected_index, len(visible) - 1)
            else:
                index = 0
        self._select(index)

    def _find(self, ident) -> Optional[int]:
        if ident is None:
            return None
        for i, vrow in enumerate(self._visible):
            if vrow.ident == ident:
                return i
        return None

    def _select(self, index: int) -> None:
        self._selected_index = index
        self._selected_ident = self._visible[index].ident

    def _begin_search(self) -> None:
        self._rebuild(fallback="first")

    def _cancel_normal(self) -> None:
        # A committed filter is cleared first; only then does escape quit
        if self.filter_text:
            self._clear_filter()
        else:
            self.mode = Mode.EXITING

    def _clear_filter(self) -> None:
        self.filter_text = ""
        self._rebuild(fallback="first")

    def _type(self, text: str) -> None:
        self.filter_text += text
        self._rebuild(fallback="first")

    def _backspace(self) -> None:
        self.filter_text = self.filter_text[:-1]
        self._rebuild(fallback="first")

    def _move_up(self) -> None:
        if not self._visible:
            return
        if self._selected_index in (None, 0):
            self._select(len(self._visible) - 1)
        else:
            self._select(self._selected_index - 1)

    def _move_down(self) -> None:
        if not self._visible:
            return
        if self._selected_index is None or self._selected_index + 1 >= len(self._visible):
            self._select(0)
        else:
            self._select(self._selected_index + 1)

    def _toggle(self) -> None:
        current = self.selected
        if current is None:
            return
        key = current.row.key
        if current.is_pane:
            self.expanded.discard(key)
            self._selected_ident = (key, None)
        elif key in self.expanded:
            self.expanded.discard(key)
        elif current.row.panes:
            self.expanded.add(key)
        else:
            self.message = f"{current.row.session_name} has no panes"
        self._rebuild(fallback="clamp")

    def _activate(self) -> Optional[Effect]:
        current = self.selected
        if current is None:
            return None
        if current.row.historical:
            self.message = f"{current.row.session_name} is not running"
            return None
        if current.is_pane:
            if current.pane.historical:
                self.message = f"pane {current.pane.pane_id} is gone"
                return None
            return SwitchTo(current.pane.pane_id)
        return SwitchTo(current.row.session_id)

    def _refresh(self) -> Effect:
        return Refresh()

    def _forget(self) -> Optional[Effect]:
        current = self.selected
        if current is None:
            return None
        if current.is_pane or not current.row.historical:
            self.message = "only historical sessions can be forgotten"
            return None
        return Forget(current.row.session_name)

    def _choice_up(self) -> None:
        self.choice_index = (self.choice_index - 1) % len(STATUS_CHOICES)

    def _choice_down(self) -> None:
        self.choice_index = (self.choice_index + 1) % len(STATUS_CHOICES)

    def _confirm_choice(self) -> Optional[Effect]:
        if self.pane_target is None:
            return None
        session_name, pane_id = self.pane_target
        return SetPaneStatus(session_name, pane_id, STATUS_CHOICES[self.choice_index])
