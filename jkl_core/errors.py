"""Base exception for errors reported at the jkl command boundary."""


class JklError(Exception):
    """An error with a message meant for the user.

    The CLI prints ``Error: <message>`` and exits non-zero; the TUI shows
    the message on its log line.
    """
