"""Tests for the jkl TUI key mapping and widgets."""

from rich.text import Text

from jkl_core.reconcile import reconcile
from jkl_core.store import AgentStatus
from jkl_core.tui.app import key_action
from jkl_core.tui.state import Action, BrowserState, Mode
from jkl_core.tui.widgets import (
    MISSING,
    SessionList,
    StatusPicker,
    field_text,
    status_style,
    status_text,
)

from tests.conftest import make_session


class TestKeyAction:
    def test_normal_keys(self):
        assert key_action(Mode.NORMAL, "slash", "/") == (Action.SEARCH, "")
        assert key_action(Mode.NORMAL, "j", "j") == (Action.DOWN, "")
        assert key_action(Mode.NORMAL, "enter") == (Action.ACTIVATE, "")
        assert key_action(Mode.NORMAL, "D", "D") == (Action.FORGET, "")

    def test_normal_ignores_other_characters(self):
        assert key_action(Mode.NORMAL, "x", "x") == (None, "")

    def test_search_types_printable(self):
        assert key_action(Mode.SEARCHING, "j", "j") == (Action.TYPE, "j")
        assert key_action(Mode.SEARCHING, "space", " ") == (Action.TYPE, " ")

    def test_search_special_keys(self):
        assert key_action(Mode.SEARCHING, "enter") == (Action.COMMIT, "")
        assert key_action(Mode.SEARCHING, "escape") == (Action.CANCEL, "")
        assert key_action(Mode.SEARCHING, "backspace") == (Action.BACKSPACE, "")
        assert key_action(Mode.SEARCHING, "tab", "\t") == (None, "")

    def test_picker_keys(self):
        assert key_action(Mode.PANE_STATE_SELECT, "k", "k") == (Action.UP, "")
        assert key_action(Mode.PANE_STATE_SELECT, "slash", "/") == (None, "")

    def test_exiting_ignores_everything(self):
        assert key_action(Mode.EXITING, "enter") == (None, "")


class TestFormatting:
    def test_missing_fields(self):
        assert status_text(None) == MISSING
        assert field_text(None) == MISSING
        assert field_text("   ") == MISSING
        assert field_text(" ctx ") == "ctx"

    def test_status_colours(self):
        assert status_style(AgentStatus.DONE) == "green"
        assert status_style(AgentStatus.WORKING) == "blue"
        assert status_style(AgentStatus.WAITING) == status_style(AgentStatus.IDLE) == "yellow"
        assert status_style(None) == ""


class TestSessionList:
    def _snapshot(self, store, expand=False):
        store.upsert_session("work", status=AgentStatus.WORKING, context="parser")
        store.upsert_pane("work", "%9", status=AgentStatus.DONE)
        store.upsert_session("old", context="finished")
        state = BrowserState(reconcile([make_session("$1", "work", ["%1"])], store))
        if expand:
            state.dispatch(Action.TOGGLE)
        return state.snapshot()

    def test_render_empty(self):
        result = SessionList().render()
        assert isinstance(result, Text)
        assert "No sessions." in result.plain

    def test_render_empty_search(self, store):
        state = BrowserState(reconcile([make_session("$1", "work")], store))
        state.dispatch(Action.SEARCH)
        state.dispatch(Action.TYPE, "zz")
        widget = SessionList()
        widget.update_snapshot(state.snapshot())
        assert "No sessions match the search." in widget.render().plain

    def test_render_rows(self, store):
        widget = SessionList()
        widget.update_snapshot(self._snapshot(store))
        text = widget.render().plain
        lines = text.splitlines()
        assert lines[0].startswith("Session")
        assert "▸ work" in lines[1]
        assert "working" in lines[1]
        assert "parser" in lines[1]
        assert "old (historical)" in lines[2]
        assert MISSING in lines[2]
        assert "finished" in lines[2]

    def test_render_expanded_panes(self, store):
        widget = SessionList()
        widget.update_snapshot(self._snapshot(store, expand=True))
        text = widget.render().plain
        assert "▾ work" in text
        assert "└ %1" in text
        assert "└ %9 (gone)" in text


class TestStatusPicker:
    def test_render_choices(self):
        widget = StatusPicker()
        widget.update_snapshot(BrowserState.for_pane("work", "%3", AgentStatus.IDLE).snapshot())
        text = widget.render().plain
        assert "work %3" in text
        assert "▶ idle" in text
        for status in ("working", "waiting", "done"):
            assert status in text
