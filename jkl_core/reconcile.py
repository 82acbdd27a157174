"""Merge live tmux state with stored session metadata.

:func:`reconcile` is pure: it reads a snapshot of live sessions and the
store's records and returns display rows, so it can run on every refresh.
Identity across a rename is *not* tracked here; it only survives when
``ContextStore.rename`` ran before the next reconciliation.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from jkl_core.identity import identity_key
from jkl_core.live import LivePane, LiveSession, id_number
from jkl_core.store import AgentStatus, ContextStore, PaneRecord, SessionRecord


@dataclass(frozen=True)
class ReconciledPaneRow:
    pane_id: str
    live: Optional[LivePane] = None
    record: Optional[PaneRecord] = None

    @property
    def historical(self) -> bool:
        return self.live is None

    @property
    def status(self) -> Optional[AgentStatus]:
        return self.record.status if self.record else None

    @property
    def context(self) -> Optional[str]:
        return self.record.context if self.record else None


@dataclass(frozen=True)
class ReconciledRow:
    key: str
    session_name: str
    live: Optional[LiveSession] = None
    record: Optional[SessionRecord] = None
    panes: tuple[ReconciledPaneRow, ...] = field(default_factory=tuple)

    @property
    def historical(self) -> bool:
        """Stored metadata for a session that is no longer running."""
        return self.live is None

    @property
    def can_switch(self) -> bool:
        return self.live is not None

    @property
    def session_id(self) -> Optional[str]:
        if self.live is not None:
            return self.live.session_id
        return self.record.session_id if self.record else None

    @property
    def status(self) -> Optional[AgentStatus]:
        return self.record.status if self.record else None

    @property
    def context(self) -> Optional[str]:
        return self.record.context if self.record else None


def _stored_pane_key(pane_id: str) -> tuple:
    return (id_number(pane_id), pane_id)


def _pane_rows(live: Optional[LiveSession], record: Optional[SessionRecord]) -> tuple[ReconciledPaneRow, ...]:
    stored = record.panes if record else {}
    rows = []
    seen = set()
    if live is not None:
        for pane in sorted(live.panes, key=LivePane.sort_key):
            rows.append(ReconciledPaneRow(pane.pane_id, live=pane, record=stored.get(pane.pane_id)))
            seen.add(pane.pane_id)
    # Panes that are stored but no longer running come after the live ones
    for pane_id in sorted(stored, key=_stored_pane_key):
        if pane_id not in seen:
            rows.append(ReconciledPaneRow(pane_id, record=stored[pane_id]))
    return tuple(rows)


def reconcile(live: Sequence[LiveSession], store: ContextStore) -> list[ReconciledRow]:
    """Pair every live session with its stored record, then append stored-only rows.

    Live rows follow tmux's session order ($N ids, then name); historical
    rows follow, sorted by name.  Identical inputs give identical output.
    """
    records = store.records
    rows: list[ReconciledRow] = []
    matched: set[str] = set()

    for session in sorted(live, key=LiveSession.sort_key):
        key = identity_key(session.name)
        record = records.get(key)
        matched.add(key)
        rows.append(ReconciledRow(
            key=key,
            session_name=session.name,
            live=session,
            record=record,
            panes=_pane_rows(session, record),
        ))

    historical = [
        (key, record) for key, record in records.items() if key not in matched
    ]
    historical.sort(key=lambda item: (item[1].session_name, item[0]))
    for key, record in historical:
        rows.append(ReconciledRow(
            key=key,
            session_name=record.session_name,
            record=record,
            panes=_pane_rows(None, record),
        ))
    return rows


def live_pane_map(live: Sequence[LiveSession]) -> dict[str, set[str]]:
    """Map each live session name to its pane ids (input for prune_panes)."""
    return {session.name: {pane.pane_id for pane in session.panes} for session in live}


def live_session_ids(live: Sequence[LiveSession]) -> dict[str, str]:
    """Map each live session name to its tmux id (input for record_session_ids)."""
    return {session.name: session.session_id for session in live}
