"""Tests for jkl_core.reconcile: merging live tmux state with the store."""

from jkl_core.identity import identity_key
from jkl_core.live import LivePane, LiveSession
from jkl_core.reconcile import live_pane_map, reconcile
from jkl_core.store import AgentStatus

from tests.conftest import make_session


class TestReconcile:
    def test_live_only_session_has_no_record(self, store):
        rows = reconcile([make_session("$1", "fresh")], store)
        assert len(rows) == 1
        row = rows[0]
        assert row.key == identity_key("fresh")
        assert row.record is None
        assert row.status is None
        assert row.context is None
        assert not row.historical
        assert row.can_switch

    def test_stored_only_session_is_historical(self, store):
        store.upsert_session("gone", session_id="$7", status=AgentStatus.DONE)
        rows = reconcile([], store)
        assert len(rows) == 1
        assert rows[0].historical
        assert not rows[0].can_switch
        assert rows[0].status is AgentStatus.DONE
        assert rows[0].session_id == "$7"

    def test_pairs_record_by_name(self, store):
        store.upsert_session("work", status=AgentStatus.WORKING, context="ctx")
        rows = reconcile([make_session("$2", "work")], store)
        assert rows[0].record is store.get_by_name("work")
        assert rows[0].context == "ctx"
        assert rows[0].session_id == "$2"

    def test_live_first_then_historical_by_name(self, store):
        for name in ("zeta", "alpha", "live-b"):
            store.upsert_session(name)
        live = [make_session("$10", "live-b"), make_session("$2", "live-a")]

        names = [row.session_name for row in reconcile(live, store)]

        # $2 before $10: numeric, not lexical
        assert names == ["live-a", "live-b", "alpha", "zeta"]

    def test_order_is_stable(self, store):
        store.upsert_session("old")
        live = [make_session("$3", "c"), make_session("$1", "a"), make_session("$2", "b")]
        first = [row.key for row in reconcile(live, store)]
        second = [row.key for row in reconcile(list(reversed(live)), store)]
        assert first == second

    def test_renamed_without_hook_leaves_old_record_historical(self, store):
        store.upsert_session("before", context="ctx")
        rows = reconcile([make_session("$1", "after")], store)
        by_name = {row.session_name: row for row in rows}
        assert by_name["after"].record is None
        assert by_name["before"].historical
        assert by_name["before"].context == "ctx"

    def test_does_not_mutate_store(self, store, store_path):
        reconcile([make_session("$1", "new", ["%1"])], store)
        assert len(store) == 0
        assert not store_path.exists()


class TestPaneRows:
    def test_live_panes_then_stored_only(self, store):
        store.upsert_pane("work", "%9", status=AgentStatus.DONE)
        store.upsert_pane("work", "%2", context="shell")
        live = [make_session("$1", "work", ["%2", "%3"])]

        panes = reconcile(live, store)[0].panes

        assert [p.pane_id for p in panes] == ["%2", "%3", "%9"]
        assert [p.historical for p in panes] == [False, False, True]
        assert panes[0].context == "shell"
        assert panes[1].record is None
        assert panes[2].status is AgentStatus.DONE

    def test_live_pane_order_follows_layout(self, store):
        panes = (
            LivePane("%5", window_index=1, pane_index=0),
            LivePane("%4", window_index=0, pane_index=1),
            LivePane("%8", window_index=0, pane_index=0),
        )
        rows = reconcile([LiveSession("$1", "work", panes)], store)
        assert [p.pane_id for p in rows[0].panes] == ["%8", "%4", "%5"]

    def test_historical_session_keeps_pane_records(self, store):
        store.upsert_pane("gone", "%12", status=AgentStatus.IDLE)
        store.upsert_pane("gone", "%3", status=AgentStatus.DONE)
        panes = reconcile([], store)[0].panes
        assert [p.pane_id for p in panes] == ["%3", "%12"]
        assert all(p.historical for p in panes)


class TestLivePaneMap:
    def test_maps_names_to_pane_ids(self):
        live = [make_session("$1", "a", ["%1", "%2"]), make_session("$2", "b")]
        assert live_pane_map(live) == {"a": {"%1", "%2"}, "b": set()}
