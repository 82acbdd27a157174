"""Glue between the browser state machine, live tmux state and the store.

The Textual app forwards every key as an :class:`Action` to
:meth:`Browser.dispatch` and renders the returned snapshot; everything
with side effects (tmux calls, store writes, reloads) happens here, one
call at a time between input events.
"""

from typing import Optional, Sequence

from jkl_core.errors import JklError
from jkl_core.live import LiveSession, LiveStateProvider
from jkl_core.paths import configure_logger
from jkl_core.reconcile import live_session_ids, reconcile
from jkl_core.store import ContextStore
from jkl_core.tmux import NoServerError
from jkl_core.tui.state import (
    Action,
    BrowserState,
    Effect,
    Forget,
    Refresh,
    SetPaneStatus,
    Snapshot,
    SwitchTo,
)

_log = configure_logger("jkl.tui")


class Browser:
    def __init__(self, provider: LiveStateProvider, store: ContextStore,
                 state: Optional[BrowserState] = None):
        self.provider = provider
        self.store = store
        self.state = state or BrowserState()
        self.switched_to: Optional[str] = None
        self.live: Sequence[LiveSession] = []
        # tmux id recorded with a pane status written from the picker
        self.pane_session_id: Optional[str] = None

    @classmethod
    def open(cls, provider: LiveStateProvider, store: ContextStore) -> "Browser":
        """Browser over the full session list, populated from live state."""
        browser = cls(provider, store)
        browser.refresh(reload_store=False)
        return browser

    @classmethod
    def for_pane(cls, provider: LiveStateProvider, store: ContextStore,
                 session_name: str, pane_id: str,
                 session_id: Optional[str] = None) -> "Browser":
        """Browser that only picks a status for one pane, then exits.

        Without *session_id* the live session of that name is looked up once,
        so the written record can still be followed across a tmux rename.
        """
        current = None
        record = store.get_by_name(session_name)
        if record is not None and pane_id in record.panes:
            current = record.panes[pane_id].status
        browser = cls(provider, store, BrowserState.for_pane(session_name, pane_id, current))
        browser.pane_session_id = session_id or browser._lookup_session_id(session_name)
        return browser

    def _lookup_session_id(self, session_name: str) -> Optional[str]:
        try:
            live = self.provider.list_sessions()
        except JklError as e:
            _log.info("session id lookup for %r failed: %s", session_name, e)
            return None
        return live_session_ids(live).get(session_name)

    @property
    def busy(self) -> bool:
        """True while a store write is in progress; timer refreshes wait."""
        return self.store.mutating

    def snapshot(self) -> Snapshot:
        return self.state.snapshot()

    def dispatch(self, action: Action, text: str = "") -> Snapshot:
        effect = self.state.dispatch(action, text)
        if effect is not None:
            self._apply(effect)
        return self.state.snapshot()

    def tick(self) -> bool:
        """Timer-driven refresh; skipped while a mutation is in flight."""
        if self.busy:
            _log.debug("refresh tick skipped: store write in progress")
            return False
        self.refresh()
        return True

    def refresh(self, reload_store: bool = True) -> None:
        """Re-read the store and live sessions, then reconcile into the view.

        Errors never escape: the last good store and live list stay in
        place and the error goes to the message line.
        """
        messages = []
        store_ok = live_ok = True
        if reload_store:
            try:
                self.store = ContextStore.load(self.store.path)
            except JklError as e:
                # Keep showing the last good copy; never overwrite the broken file
                _log.warning("refresh: %s", e)
                messages.append(str(e))
                store_ok = False
        try:
            self.live = self.provider.list_sessions()
        except NoServerError as e:
            _log.info("refresh: %s", e)
            live_ok = False
            self.live = []
            messages.append(str(e))
        except JklError as e:
            _log.warning("refresh: tmux query failed: %s", e)
            messages.append(str(e))
            live_ok = False
        if store_ok and live_ok:
            try:
                self.store.record_session_ids(live_session_ids(self.live))
            except JklError as e:
                _log.warning("refresh: could not record session ids: %s", e)
                messages.append(str(e))
        self.state.replace_rows(reconcile(self.live, self.store))
        self.state.message = messages[0] if messages else ""
        _log.debug("refresh: %d row(s)", len(self.state.rows))

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, Refresh):
            self.refresh()
        elif isinstance(effect, SwitchTo):
            self._switch(effect.target)
        elif isinstance(effect, SetPaneStatus):
            self._set_pane_status(effect)
        elif isinstance(effect, Forget):
            self._forget(effect.session_name)

    def _switch(self, target: str) -> None:
        try:
            self.provider.switch_client(target)
        except JklError as e:
            _log.warning("switch to %s failed: %s", target, e)
            self.state.message = f"switch failed: {e}"
            return
        self.switched_to = target
        self.state.finish()

    def _set_pane_status(self, effect: SetPaneStatus) -> None:
        try:
            self.store.upsert_pane(effect.session_name, effect.pane_id, status=effect.status,
                                   session_id=self.pane_session_id)
        except JklError as e:
            _log.warning("pane status write failed: %s", e)
            self.state.message = str(e)
            return
        self.state.finish()

    def _forget(self, session_name: str) -> None:
        try:
            self.store.forget(session_name)
        except JklError as e:
            self.state.message = str(e)
            return
        self.refresh(reload_store=False)
        self.state.message = f"forgot {session_name}"
