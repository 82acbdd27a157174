"""Stable storage keys for tmux sessions.

Records are keyed by a hash of the session *name* rather than tmux's own
``$N`` session id, which is reused across server restarts.  Every caller
goes through :func:`identity_key` so the algorithm can change in one place.
"""

import hashlib

KEY_ALGORITHM = "sha256"


def identity_key(session_name: str) -> str:
    """Return the hex digest identifying *session_name* in the store.

    Deterministic and independent of process or platform: the same name
    always maps to the same 64-character key.
    """
    return hashlib.new(KEY_ALGORITHM, session_name.encode("utf-8")).hexdigest()
