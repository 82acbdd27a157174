"""jkl: status and context notes for tmux sessions and panes."""

__version__ = "0.3.0"
