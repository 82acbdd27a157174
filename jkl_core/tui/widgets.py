"""Widgets rendering BrowserState snapshots."""

from typing import Optional

from rich.console import RenderableType
from rich.markup import escape
from rich.text import Text
from textual.widget import Widget
from textual.widgets import Static

from jkl_core.store import AgentStatus
from jkl_core.tui.state import Mode, Snapshot, VisibleRow

MISSING = "-"

_STATUS_STYLES = {
    AgentStatus.DONE: "green",
    AgentStatus.WORKING: "blue",
    # waiting and idle share a colour; they stay distinct values in the store
    AgentStatus.WAITING: "yellow",
    AgentStatus.IDLE: "yellow",
}

MODE_LABELS = {
    Mode.NORMAL: "[NORM]",
    Mode.SEARCHING: "[SEARCH]",
    Mode.PANE_STATE_SELECT: "[PANE]",
    Mode.EXITING: "",
}

HINTS = {
    Mode.NORMAL: "(Esc/q) back/quit | (/) search | (Enter) switch | (l) panes | (r) refresh | (D) forget",
    Mode.SEARCHING: "(Esc) clear search | (Enter) keep filter | (↑/↓) move",
    Mode.PANE_STATE_SELECT: "(↑/↓) choose | (Enter) set | (Esc) cancel",
    Mode.EXITING: "",
}


def status_style(status: Optional[AgentStatus]) -> str:
    return _STATUS_STYLES.get(status, "") if status is not None else ""


def status_text(status: Optional[AgentStatus]) -> str:
    return status.value if status is not None else MISSING


def field_text(value: Optional[str]) -> str:
    if value is None or not value.strip():
        return MISSING
    return value.strip()


def _label(vrow: VisibleRow, expanded: frozenset) -> str:
    if vrow.pane is not None:
        suffix = " (gone)" if vrow.pane.historical else ""
        return f"   └ {vrow.pane.pane_id}{suffix}"
    row = vrow.row
    if not row.panes:
        marker = "  "
    else:
        marker = "▾ " if row.key in expanded else "▸ "
    suffix = " (historical)" if row.historical else ""
    return f"{marker}{row.session_name}{suffix}"


def _status_of(vrow: VisibleRow) -> Optional[AgentStatus]:
    return vrow.pane.status if vrow.pane is not None else vrow.row.status


def _context_of(vrow: VisibleRow) -> Optional[str]:
    return vrow.pane.context if vrow.pane is not None else vrow.row.context


class SessionList(Widget):
    """Table of sessions (and expanded panes) with status and context."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._snapshot: Optional[Snapshot] = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh(layout=True)

    def _truncate(self, text: str, max_width: int) -> str:
        """Truncate text to max_width, adding ellipsis if needed."""
        if max_width <= 1 or len(text) <= max_width:
            return text
        return text[: max_width - 1] + "…"

    def render(self) -> RenderableType:
        output = Text()
        snap = self._snapshot
        if snap is None or not snap.rows:
            if snap is not None and snap.filter_text:
                output.append("No sessions match the search.\n", style="dim")
            else:
                output.append("No sessions.\n", style="dim")
            return output

        labels = [_label(vrow, snap.expanded) for vrow in snap.rows]
        name_width = max([len("Session")] + [len(label) for label in labels]) + 2
        status_width = max(len("Status"), max(len(s.value) for s in AgentStatus)) + 2
        content_width = self.size.width if self.size.width > 20 else 100
        context_width = max(10, content_width - name_width - status_width)

        output.append("Session".ljust(name_width), style="bold")
        output.append("Status".ljust(status_width), style="bold")
        output.append("Context\n", style="bold")

        for i, (vrow, label) in enumerate(zip(snap.rows, labels)):
            selected = i == snap.selected
            historical = vrow.row.historical or (vrow.pane is not None and vrow.pane.historical)
            base = "dim" if historical else ""
            line = Text()
            line.append(label.ljust(name_width), style=base)
            status = _status_of(vrow)
            line.append(status_text(status).ljust(status_width), style=status_style(status) or base)
            line.append(self._truncate(field_text(_context_of(vrow)), context_width), style=base)
            if selected:
                line.stylize("reverse")
            output.append_text(line)
            output.append("\n")
        return output


class StatusPicker(Widget):
    """Status choices for one pane (pane-state popup)."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._snapshot: Optional[Snapshot] = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        output = Text()
        snap = self._snapshot
        if snap is None or snap.pane_target is None:
            return output
        session_name, pane_id = snap.pane_target
        output.append("Status for ", style="dim")
        output.append(f"{session_name} {pane_id}\n\n", style="bold")
        for i, choice in enumerate(snap.choices):
            if i == snap.choice_index:
                output.append("▶ ", style="bold cyan")
            else:
                output.append("  ")
            output.append(choice.value + "\n", style=status_style(choice))
        return output


class SearchBar(Static):
    """Single-line display of the current filter."""

    def update_filter(self, text: str, active: bool) -> None:
        if text or active:
            cursor = "█" if active else ""
            self.update(f"Search: {escape(text)}{cursor}")
        else:
            self.update("[dim]Search: [/dim]")


class LogLine(Static):
    """Single-line message output (errors, confirmations)."""
    pass


class ModeLine(Static):
    """Key hints plus the current mode tag."""

    def update_mode(self, mode: Mode) -> None:
        self.update(f"{escape(HINTS[mode])}  [bold]{escape(MODE_LABELS[mode])}[/bold]")
