"""Shared test helpers for jkl_core tests."""

import os
import tempfile

import pytest

# Loggers are configured at import time; keep their files out of the real home
os.environ.setdefault("JKL_HOME", tempfile.mkdtemp(prefix="jkl-test-home-"))

from jkl_core.live import LivePane, LiveSession  # noqa: E402
from jkl_core.store import ContextStore  # noqa: E402
from jkl_core.tmux import NoServerError  # noqa: E402


class FakeProvider:
    """LiveStateProvider returning a fixed session list and recording switches."""

    def __init__(self, sessions=(), no_server=False):
        self.sessions = list(sessions)
        self.no_server = no_server
        self.switched = []
        self.calls = 0

    def list_sessions(self):
        self.calls += 1
        if self.no_server:
            raise NoServerError("no server running on /tmp/tmux-1000/default")
        return list(self.sessions)

    def switch_client(self, target):
        self.switched.append(target)


def make_session(session_id, name, pane_ids=(), attached=False):
    """LiveSession with panes laid out one per window in the given order."""
    panes = tuple(
        LivePane(pane_id=pane_id, window_index=i, pane_index=0)
        for i, pane_id in enumerate(pane_ids)
    )
    return LiveSession(session_id=session_id, name=name, panes=panes, attached=attached)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point JKL_HOME at a fresh directory and drop settings from the environment."""
    home = tmp_path / "jkl-home"
    monkeypatch.setenv("JKL_HOME", str(home))
    for var in ("JKL_STORE", "JKL_TMUX_SOCKET", "JKL_DEBUG", "TMUX", "TMUX_PANE"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "session_context.json"


@pytest.fixture
def store(store_path):
    return ContextStore(store_path)
