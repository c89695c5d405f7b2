"""
User-facing status of a call attempt.

Holds the one status line and the one error line a participant sees. This is
a projection of negotiation progress, never the source of truth for it.
"""

from datetime import datetime
from typing import Callable, Dict, List


class CallStatus:
    """
    Status and error strings for a single call session.

    The error is only cleared explicitly: begin_action() at the start of a
    user action, or reset(). Status updates never clear it.
    """

    def __init__(self):
        self._status = ""
        self._error = ""
        self._updated_at = datetime.now().isoformat()
        self._listeners: List[Callable[[Dict], None]] = []

    @property
    def status(self) -> str:
        return self._status

    @property
    def error(self) -> str:
        return self._error

    def begin_action(self, status: str):
        """Clear any stale error and show the first status of a new action."""
        self._error = ""
        self._set(status=status)

    def set_status(self, status: str):
        self._set(status=status)

    def set_error(self, error: str):
        self._error = error
        self._set()

    def fail(self, error: str):
        """
        Report a failed setup step.

        The status goes back to empty so the participant can retry manually.
        """
        self._error = error
        self._set(status="")

    def reset(self):
        self._error = ""
        self._set(status="")

    def on_change(self, callback: Callable[[Dict], None]):
        """Register a callback receiving snapshot() after every change."""
        self._listeners.append(callback)

    def snapshot(self) -> Dict:
        return {
            "status": self._status,
            "error": self._error,
            "updated_at": self._updated_at,
        }

    def _set(self, status: str = None):
        if status is not None:
            self._status = status
        self._updated_at = datetime.now().isoformat()
        snapshot = self.snapshot()
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception as e:
                from tools.logger import log_error

                log_error(f"Error in status callback: {e}")
