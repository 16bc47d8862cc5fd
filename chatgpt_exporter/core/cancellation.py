"""
Cooperative cancellation for long-running exports.
"""

import threading

from .errors import Cancelled


class CancellationToken:
    """
    Flag checked at every suspension point (before a request, before a sleep).

    Backed by a threading.Event so a signal handler or another thread can
    cancel a running export.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise Cancelled if cancel() has been called."""
        if self._event.is_set():
            raise Cancelled("Operation cancelled")
