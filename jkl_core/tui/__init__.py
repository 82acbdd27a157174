"""Interactive session list for jkl.

``state`` holds the terminal-independent state machine, ``controller``
binds it to tmux and the store, and ``app``/``widgets`` render it with
Textual.
"""
