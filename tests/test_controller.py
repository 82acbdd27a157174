"""Tests for jkl_core.tui.controller: Browser effects against a fake provider."""

from unittest.mock import MagicMock, patch

from jkl_core.store import AgentStatus, ContextStore, StoreIOError
from jkl_core.tmux import TmuxError
from jkl_core.tui.controller import Browser
from jkl_core.tui.state import Action, Mode

from tests.conftest import FakeProvider, make_session


def _names(snapshot):
    return [v.row.session_name for v in snapshot.rows if v.pane is None]


class TestOpen:
    def test_populates_from_provider_and_store(self, store):
        store.upsert_session("old", status=AgentStatus.DONE)
        provider = FakeProvider([make_session("$1", "live")])
        browser = Browser.open(provider, store)
        assert _names(browser.snapshot()) == ["live", "old"]
        assert provider.calls == 1

    def test_no_server_shows_stored_rows_and_message(self, store):
        store.upsert_session("old")
        browser = Browser.open(FakeProvider(no_server=True), store)
        snap = browser.snapshot()
        assert _names(snap) == ["old"]
        assert "no server running" in snap.message
        assert snap.mode == Mode.NORMAL


class TestSwitch:
    def test_enter_switches_and_exits(self, store):
        provider = FakeProvider([make_session("$4", "work")])
        browser = Browser.open(provider, store)
        snap = browser.dispatch(Action.ACTIVATE)
        assert provider.switched == ["$4"]
        assert browser.switched_to == "$4"
        assert snap.mode == Mode.EXITING

    def test_switch_failure_stays_open(self, store):
        provider = FakeProvider([make_session("$4", "work")])
        provider.switch_client = MagicMock(side_effect=TmuxError("can't find session"))
        browser = Browser.open(provider, store)
        snap = browser.dispatch(Action.ACTIVATE)
        assert snap.mode == Mode.NORMAL
        assert "can't find session" in snap.message
        assert browser.switched_to is None


class TestRefresh:
    def test_picks_up_external_writes(self, store, store_path):
        provider = FakeProvider([make_session("$1", "work")])
        browser = Browser.open(provider, store)

        # another jkl process writes the file
        ContextStore.load(store_path).upsert_session("work", status=AgentStatus.WAITING)

        snap = browser.dispatch(Action.REFRESH)
        assert snap.rows[0].row.status is AgentStatus.WAITING

    def test_corrupt_file_keeps_last_good_copy(self, store, store_path):
        store.upsert_session("work", context="ctx")
        browser = Browser.open(FakeProvider([make_session("$1", "work")]), store)
        store_path.write_text("{broken")

        snap = browser.dispatch(Action.REFRESH)

        assert snap.rows[0].row.context == "ctx"
        assert "corrupt" in snap.message
        assert store_path.read_text() == "{broken"

    def test_tick_skipped_while_mutating(self, store):
        provider = FakeProvider([make_session("$1", "work")])
        browser = Browser.open(provider, store)
        store.mutating = True
        assert browser.tick() is False
        assert provider.calls == 1
        store.mutating = False
        assert browser.tick() is True
        assert provider.calls == 2

    def test_selection_survives_refresh(self, store):
        provider = FakeProvider([make_session("$1", "a"), make_session("$2", "b")])
        browser = Browser.open(provider, store)
        browser.dispatch(Action.DOWN)
        provider.sessions.insert(0, make_session("$0", "first"))
        snap = browser.dispatch(Action.REFRESH)
        assert snap.rows[snap.selected].row.session_name == "b"

    def test_tmux_failure_keeps_rows(self, store):
        store.upsert_session("work", context="ctx")
        provider = FakeProvider()
        provider.list_sessions = MagicMock(side_effect=[
            [make_session("$1", "work", ["%1"])],
            TmuxError("server exited unexpectedly"),
        ])
        browser = Browser.open(provider, store)

        snap = browser.dispatch(Action.REFRESH)

        assert snap.mode == Mode.NORMAL
        assert "server exited unexpectedly" in snap.message
        assert _names(snap) == ["work"]
        assert not snap.rows[0].row.historical
        assert snap.rows[0].row.context == "ctx"

    def test_unreadable_store_keeps_rows(self, store, store_path):
        store.upsert_session("work", context="ctx")
        browser = Browser.open(FakeProvider([make_session("$1", "work")]), store)
        store_path.unlink()
        store_path.mkdir()

        snap = browser.dispatch(Action.REFRESH)

        assert snap.mode == Mode.NORMAL
        assert "Could not read" in snap.message
        assert snap.rows[0].row.context == "ctx"

    def test_records_live_session_ids(self, store, store_path):
        store.upsert_pane("a", "%1", status=AgentStatus.WORKING)
        store.upsert_session("gone")
        Browser.open(FakeProvider([make_session("$1", "a", ["%1"])]), store)

        reloaded = ContextStore.load(store_path)
        assert reloaded.get_by_name("a").session_id == "$1"
        assert reloaded.get_by_name("gone").session_id is None
        reloaded.rename_target("$1", "b")
        assert reloaded.get_by_name("b").panes["%1"].status is AgentStatus.WORKING

    def test_untracked_live_sessions_not_stored(self, store, store_path):
        Browser.open(FakeProvider([make_session("$1", "scratch")]), store)
        assert not store_path.exists()


class TestForget:
    def test_forget_historical_row(self, store, store_path):
        store.upsert_session("old")
        browser = Browser.open(FakeProvider([make_session("$1", "live")]), store)
        browser.dispatch(Action.DOWN)
        snap = browser.dispatch(Action.FORGET)
        assert _names(snap) == ["live"]
        assert snap.message == "forgot old"
        assert ContextStore.load(store_path).get_by_name("old") is None


class TestPaneState:
    def test_confirm_writes_pane_and_exits(self, store, store_path):
        store.upsert_pane("work", "%3", status=AgentStatus.IDLE)
        browser = Browser.for_pane(FakeProvider(), store, "work", "%3")
        assert browser.snapshot().choice_index == 2

        browser.dispatch(Action.DOWN)
        snap = browser.dispatch(Action.ACTIVATE)

        assert snap.mode == Mode.EXITING
        pane = ContextStore.load(store_path).get_by_name("work").panes["%3"]
        assert pane.status is AgentStatus.DONE

    def test_write_failure_stays_in_picker(self, store):
        browser = Browser.for_pane(FakeProvider(), store, "work", "%3")
        with patch.object(store, "save", side_effect=StoreIOError("read-only")):
            snap = browser.dispatch(Action.ACTIVATE)
        assert snap.mode == Mode.PANE_STATE_SELECT
        assert snap.message == "read-only"
        assert store.get_by_name("work") is None

    def test_given_session_id_skips_tmux(self, store):
        provider = FakeProvider(no_server=True)
        browser = Browser.for_pane(provider, store, "work", "%3", session_id="$1")
        browser.dispatch(Action.ACTIVATE)
        assert provider.calls == 0
        assert store.get_by_name("work").session_id == "$1"

    def test_write_survives_tmux_rename(self, store, store_path):
        provider = FakeProvider([make_session("$1", "a", ["%1"])])
        browser = Browser.for_pane(provider, store, "a", "%1")
        browser.dispatch(Action.ACTIVATE)

        # session-renamed hook: jkl rename $1 b
        ContextStore.load(store_path).rename_target("$1", "b")

        reloaded = ContextStore.load(store_path)
        assert reloaded.get_by_name("a") is None
        record = reloaded.get_by_name("b")
        assert record.session_id == "$1"
        assert "%1" in record.panes

    def test_lookup_without_server_still_writes(self, store, store_path):
        browser = Browser.for_pane(FakeProvider(no_server=True), store, "work", "%3")
        snap = browser.dispatch(Action.ACTIVATE)
        assert snap.mode == Mode.EXITING
        record = ContextStore.load(store_path).get_by_name("work")
        assert record.session_id is None
        assert "%3" in record.panes
