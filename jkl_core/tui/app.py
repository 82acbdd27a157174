"""Textual app for the jkl session list and the pane-status popup."""

from typing import Optional

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll

from jkl_core.paths import configure_logger
from jkl_core.tui.controller import Browser
from jkl_core.tui.state import Action, Mode, Snapshot
from jkl_core.tui.widgets import LogLine, ModeLine, SearchBar, SessionList, StatusPicker

_log = configure_logger("jkl.tui")

_NORMAL_KEYS = {
    "slash": Action.SEARCH,
    "escape": Action.CANCEL,
    "q": Action.QUIT,
    "j": Action.DOWN,
    "down": Action.DOWN,
    "k": Action.UP,
    "up": Action.UP,
    "l": Action.TOGGLE,
    "right": Action.TOGGLE,
    "space": Action.TOGGLE,
    "enter": Action.ACTIVATE,
    "r": Action.REFRESH,
    "D": Action.FORGET,
}

_SEARCH_KEYS = {
    "escape": Action.CANCEL,
    "enter": Action.COMMIT,
    "backspace": Action.BACKSPACE,
    "down": Action.DOWN,
    "up": Action.UP,
}

_PICKER_KEYS = {
    "j": Action.DOWN,
    "down": Action.DOWN,
    "k": Action.UP,
    "up": Action.UP,
    "enter": Action.ACTIVATE,
    "escape": Action.CANCEL,
    "q": Action.QUIT,
}


def key_action(mode: Mode, key: str, character: Optional[str] = None) -> tuple[Optional[Action], str]:
    """Translate a Textual key event into (action, typed text) for *mode*."""
    if mode == Mode.NORMAL:
        return _NORMAL_KEYS.get(key), ""
    if mode == Mode.SEARCHING:
        if key in _SEARCH_KEYS:
            return _SEARCH_KEYS[key], ""
        if character and character.isprintable():
            return Action.TYPE, character
        return None, ""
    if mode == Mode.PANE_STATE_SELECT:
        return _PICKER_KEYS.get(key), ""
    return None, ""


class SessionListApp(App):
    """Session list (or pane-status picker) driven by a Browser."""

    TITLE = "jkl"

    CSS = """
    Screen {
        layout: vertical;
    }
    SearchBar {
        height: 1;
        padding: 0 1;
    }
    #list-container {
        height: 1fr;
        border: round $primary;
    }
    SessionList {
        height: auto;
        width: 100%;
    }
    StatusPicker {
        height: 1fr;
        padding: 1 2;
        display: none;
    }
    LogLine {
        height: 1;
        color: $text-muted;
        padding: 0 1;
    }
    ModeLine {
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit_browser", "Quit", show=False, priority=True),
    ]

    def __init__(self, browser: Browser, refresh_interval: float = 0.0):
        super().__init__()
        self.browser = browser
        self.refresh_interval = refresh_interval

    def compose(self) -> ComposeResult:
        yield SearchBar(id="search-bar")
        with VerticalScroll(id="list-container"):
            yield SessionList(id="session-list")
        yield StatusPicker(id="status-picker")
        yield LogLine(id="log-line")
        yield ModeLine(id="mode-line")

    def on_mount(self) -> None:
        _log.info("TUI mounted (mode=%s)", self.browser.state.mode.value)
        picking = self.browser.state.mode == Mode.PANE_STATE_SELECT
        if picking:
            self.query_one("#search-bar").styles.display = "none"
            self.query_one("#list-container").styles.display = "none"
            self.query_one("#status-picker").styles.display = "block"
        elif self.refresh_interval > 0:
            self.set_interval(self.refresh_interval, self._tick)
        self._show(self.browser.snapshot())

    def on_key(self, event) -> None:
        action, text = key_action(self.browser.state.mode, event.key, event.character)
        if action is None:
            return
        event.stop()
        event.prevent_default()
        _log.debug("key %r -> %s", event.key, action.value)
        self._show(self.browser.dispatch(action, text))

    def action_quit_browser(self) -> None:
        self._show(self.browser.dispatch(Action.QUIT))

    def _tick(self) -> None:
        if self.browser.state.mode != Mode.NORMAL:
            return
        if self.browser.tick():
            self._show(self.browser.snapshot())

    def _show(self, snapshot: Snapshot) -> None:
        if snapshot.mode == Mode.EXITING:
            self.exit(self.browser.switched_to)
            return
        self.query_one("#search-bar", SearchBar).update_filter(
            snapshot.filter_text, snapshot.mode == Mode.SEARCHING)
        self.query_one("#session-list", SessionList).update_snapshot(snapshot)
        self.query_one("#status-picker", StatusPicker).update_snapshot(snapshot)
        self.query_one("#log-line", LogLine).update(escape(snapshot.message))
        self.query_one("#mode-line", ModeLine).update_mode(snapshot.mode)
        self._scroll_selected_into_view(snapshot)

    def _scroll_selected_into_view(self, snapshot: Snapshot) -> None:
        """Keep the selected row visible (header line sits above row 0)."""
        if snapshot.selected is None:
            return
        container = self.query_one("#list-container", VerticalScroll)
        y = snapshot.selected + 1
        viewport_h = container.size.height
        if viewport_h <= 0:
            return
        scroll_y = round(container.scroll_y)
        if y >= scroll_y + viewport_h:
            container.scroll_to(y=y - viewport_h + 1, animate=False, force=True)
        elif y < scroll_y:
            container.scroll_to(y=y, animate=False, force=True)
