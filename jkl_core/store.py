"""JSON read/write for the session context store.

The store is a single JSON object keyed by :func:`identity_key` of each
session name::

    {
      "<sha256 of name>": {
        "session_name": "proj",
        "session_id": "$3",
        "status": "working",
        "context": "refactoring the parser",
        "panes": {"%1": {"status": "done"}}
      }
    }

Only ``session_name`` and ``panes`` are always present; absent fields are
omitted rather than written as null.  Every mutating method persists the
whole file before returning (write to a temp file in the same directory,
then ``os.replace``) and rolls the in-memory state back if that fails.
"""

import copy
import json
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional

from jkl_core.errors import JklError
from jkl_core.identity import identity_key
from jkl_core.paths import configure_logger

_log = configure_logger("jkl.store")


class AgentStatus(str, Enum):
    WORKING = "working"
    WAITING = "waiting"
    IDLE = "idle"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


# Accepted on the command line to clear a status
CLEAR_STATUS = "none"
STATUS_CHOICES = [s.value for s in AgentStatus] + [CLEAR_STATUS]


def parse_status(value: str) -> Optional[AgentStatus]:
    """Parse a status name; ``"none"`` yields None (clear the field)."""
    text = value.strip().lower()
    if text == CLEAR_STATUS:
        return None
    try:
        return AgentStatus(text)
    except ValueError:
        raise ValueError(f"Invalid status: {value}") from None


class _Unset:
    """Marker for "flag not given" so that None can mean "clear"."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class CorruptStoreError(JklError):
    """The store file exists but is not a valid store document."""

    def __init__(self, path: Path, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(
            f"Store file {path} is corrupt ({detail}). "
            f"It was left untouched; fix it with 'jkl edit' or move it aside."
        )


class StoreIOError(JklError):
    """Reading or writing the store file failed."""


class NotFoundError(JklError):
    """A rename/forget target does not resolve to any stored session."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def _read_status(value, where: str) -> Optional[AgentStatus]:
    if value is None:
        return None
    try:
        return AgentStatus(value)
    except ValueError:
        # Hand-edited file: drop the bad value instead of refusing to load
        _log.warning("%s: ignoring invalid status %r", where, value)
        return None


def _read_context(value, where: str) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    _log.warning("%s: ignoring non-string context %r", where, value)
    return None


@dataclass
class PaneRecord:
    status: Optional[AgentStatus] = None
    context: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {}
        if self.status is not None:
            data["status"] = self.status.value
        if self.context is not None:
            data["context"] = self.context
        return data

    @classmethod
    def from_dict(cls, data: dict, where: str) -> "PaneRecord":
        return cls(
            status=_read_status(data.get("status"), where),
            context=_read_context(data.get("context"), where),
        )


@dataclass
class SessionRecord:
    session_name: str
    session_id: Optional[str] = None
    status: Optional[AgentStatus] = None
    context: Optional[str] = None
    panes: dict[str, PaneRecord] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data: dict = {"session_name": self.session_name}
        if self.session_id is not None:
            data["session_id"] = self.session_id
        if self.status is not None:
            data["status"] = self.status.value
        if self.context is not None:
            data["context"] = self.context
        data["panes"] = {pane_id: pane.to_dict() for pane_id, pane in self.panes.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict, path: Path, key: str) -> "SessionRecord":
        name = data.get("session_name")
        if not isinstance(name, str) or not name:
            raise CorruptStoreError(path, f"record {key} has no session_name")
        panes_raw = data.get("panes") or {}
        if not isinstance(panes_raw, dict):
            raise CorruptStoreError(path, f"panes of {name!r} is not an object")
        panes = {}
        for pane_id, pane_data in panes_raw.items():
            if not isinstance(pane_data, dict):
                raise CorruptStoreError(path, f"pane {pane_id} of {name!r} is not an object")
            panes[str(pane_id)] = PaneRecord.from_dict(pane_data, f"{name}/{pane_id}")
        session_id = data.get("session_id")
        return cls(
            session_name=name,
            session_id=str(session_id) if session_id is not None else None,
            status=_read_status(data.get("status"), name),
            context=_read_context(data.get("context"), name),
            panes=panes,
        )


def _merge_into(target: SessionRecord, source: SessionRecord) -> None:
    """Fill fields missing on *target* from *source*; union the pane maps."""
    if target.session_id is None:
        target.session_id = source.session_id
    if target.status is None:
        target.status = source.status
    if target.context is None:
        target.context = source.context
    for pane_id, pane in source.panes.items():
        existing = target.panes.get(pane_id)
        if existing is None:
            target.panes[pane_id] = pane
            continue
        if existing.status is None:
            existing.status = pane.status
        if existing.context is None:
            existing.context = pane.context


def _normalize(raw: dict, path: Path) -> dict[str, SessionRecord]:
    """Parse raw JSON into records, re-keying any entry stored under a stale key.

    Records already at their correct key are placed first so they win
    field-by-field when a stale entry collapses onto the same key.
    """
    parsed = []
    for key, value in raw.items():
        if not isinstance(value, dict):
            raise CorruptStoreError(path, f"record {key} is not an object")
        record = SessionRecord.from_dict(value, path, key)
        parsed.append((key, record))

    parsed.sort(key=lambda item: item[0] != identity_key(item[1].session_name))
    records: dict[str, SessionRecord] = {}
    for key, record in parsed:
        correct = identity_key(record.session_name)
        if correct != key:
            _log.info("re-keying %r from %s to %s", record.session_name, key[:12], correct[:12])
        if correct in records:
            _merge_into(records[correct], record)
        else:
            records[correct] = record
    return records


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ContextStore:
    """In-memory view of one store file.

    Constructed with an explicit *path*; nothing here reads a global
    location, so tests and alternate stores never share state.
    """

    def __init__(self, path: Path, records: Optional[dict[str, SessionRecord]] = None):
        self.path = Path(path)
        self.records: dict[str, SessionRecord] = records if records is not None else {}
        self.mutating = False

    @classmethod
    def load(cls, path: Path) -> "ContextStore":
        """Load the store at *path*; an absent file is an empty store.

        Raises CorruptStoreError when the file exists but cannot be parsed.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            _log.debug("no store at %s, starting empty", path)
            return cls(path)
        except OSError as e:
            raise StoreIOError(f"Could not read {path}: {e}") from e
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(path, f"invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise CorruptStoreError(path, "top level is not an object")
        store = cls(path, _normalize(raw, path))
        _log.debug("loaded %d session(s) from %s", len(store.records), path)
        return store

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, key: str) -> bool:
        return key in self.records

    def get(self, key: str) -> Optional[SessionRecord]:
        return self.records.get(key)

    def get_by_name(self, session_name: str) -> Optional[SessionRecord]:
        return self.records.get(identity_key(session_name))

    def find_by_session_id(self, session_id: str) -> Optional[str]:
        """Return the key of the record last seen with tmux id *session_id*."""
        for key, record in self.records.items():
            if record.session_id == session_id:
                return key
        return None

    def to_dict(self) -> dict:
        return {key: record.to_dict() for key, record in self.records.items()}

    @contextmanager
    def _mutation(self):
        """Apply a change and persist it, restoring memory if the save fails."""
        snapshot = copy.deepcopy(self.records)
        self.mutating = True
        try:
            yield
            self.save()
        except BaseException:
            self.records = snapshot
            raise
        finally:
            self.mutating = False

    def _claim_session_id(self, key: str, session_id: str) -> None:
        # tmux reuses $N ids after a server restart; only one record may hold one
        for other_key, record in self.records.items():
            if other_key != key and record.session_id == session_id:
                record.session_id = None

    def upsert_session(self, session_name: str, session_id: Optional[str] = None,
                       status=UNSET, context=UNSET) -> str:
        """Create or update the record for *session_name*; return its key.

        Only the fields that are passed change.  Passing None for status or
        context clears that field; leaving it UNSET keeps the stored value.
        """
        key = identity_key(session_name)
        with self._mutation():
            record = self.records.get(key)
            if record is None:
                record = SessionRecord(session_name=session_name)
                self.records[key] = record
            record.session_name = session_name
            if session_id is not None:
                self._claim_session_id(key, session_id)
                record.session_id = session_id
            if status is not UNSET:
                record.status = status
            if context is not UNSET:
                record.context = context
        _log.info("upsert session %r status=%r context=%r", session_name, status, context)
        return key

    def upsert_pane(self, session_name: str, pane_id: str,
                    status=UNSET, context=UNSET,
                    session_id: Optional[str] = None) -> str:
        """Create or update one pane's record, creating a bare session if needed.

        *session_id*, when given, is recorded on the session so a later
        rename by tmux id finds it.
        """
        key = identity_key(session_name)
        with self._mutation():
            record = self.records.get(key)
            if record is None:
                record = SessionRecord(session_name=session_name)
                self.records[key] = record
            if session_id is not None:
                self._claim_session_id(key, session_id)
                record.session_id = session_id
            pane = record.panes.get(pane_id)
            if pane is None:
                pane = PaneRecord()
                record.panes[pane_id] = pane
            if status is not UNSET:
                pane.status = status
            if context is not UNSET:
                pane.context = context
        _log.info("upsert pane %s in %r status=%r context=%r",
                  pane_id, session_name, status, context)
        return key

    def rename(self, old_name: str, new_name: str,
               session_id: Optional[str] = None) -> str:
        """Move the record for *old_name* (panes included) to *new_name*.

        A record already stored under the new name is stale (tmux names are
        unique at any instant) and is replaced.  Returns the new key.
        """
        old_key = identity_key(old_name)
        new_key = identity_key(new_name)
        if old_key not in self.records:
            raise NotFoundError(f"No stored session named {old_name!r}")
        if old_key == new_key:
            return new_key
        with self._mutation():
            record = self.records.pop(old_key)
            if new_key in self.records:
                _log.info("rename: discarding stale record for %r", new_name)
            record.session_name = new_name
            if session_id is not None:
                self._claim_session_id(new_key, session_id)
                record.session_id = session_id
            self.records[new_key] = record
        _log.info("renamed %r -> %r", old_name, new_name)
        return new_key

    def rename_target(self, target: str, new_name: str) -> str:
        """Rename by tmux session id (``$N``) or by old session name."""
        key = self.find_by_session_id(target)
        if key is not None:
            return self.rename(self.records[key].session_name, new_name, session_id=target)
        if identity_key(target) in self.records:
            return self.rename(target, new_name)
        raise NotFoundError(f"No stored session with id or name {target!r}")

    def forget(self, session_name: str) -> SessionRecord:
        """Remove a session record together with its pane records."""
        key = identity_key(session_name)
        if key not in self.records:
            raise NotFoundError(f"No stored session named {session_name!r}")
        with self._mutation():
            record = self.records.pop(key)
        _log.info("forgot %r (%d pane record(s))", session_name, len(record.panes))
        return record

    def record_session_ids(self, live_ids: Mapping[str, str]) -> int:
        """Store the current tmux id of every tracked session that is live.

        *live_ids* maps live session names to their ``$N`` ids.  Sessions
        without a record are not created.  Returns the number of records
        changed; saves only if that is non-zero.
        """
        changes = []
        for name, session_id in live_ids.items():
            key = identity_key(name)
            record = self.records.get(key)
            if record is not None and record.session_id != session_id:
                changes.append((key, session_id))
        if not changes:
            return 0
        with self._mutation():
            for key, session_id in changes:
                self._claim_session_id(key, session_id)
                self.records[key].session_id = session_id
        _log.info("recorded tmux ids for %d session(s)", len(changes))
        return len(changes)

    def prune_panes(self, live_panes: Mapping[str, Iterable[str]]) -> int:
        """Drop pane records that are gone from their (still live) session.

        *live_panes* maps live session names to their current pane ids.
        Sessions not in the mapping keep all their panes.  Returns the
        number of pane records removed; saves only if that is non-zero.
        """
        stale: list[tuple[str, str]] = []
        for key, record in self.records.items():
            if record.session_name not in live_panes:
                continue
            alive = set(live_panes[record.session_name])
            stale.extend((key, pane_id) for pane_id in record.panes if pane_id not in alive)
        if not stale:
            return 0
        with self._mutation():
            for key, pane_id in stale:
                del self.records[key].panes[pane_id]
        _log.info("pruned %d stale pane record(s)", len(stale))
        return len(stale)

    def save(self) -> None:
        """Write the whole store atomically (temp file + rename)."""
        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            _log.warning("save to %s failed: %s", self.path, e)
            raise StoreIOError(f"Could not save {self.path}: {e}") from e
        _log.debug("saved %d session(s) to %s", len(self.records), self.path)
