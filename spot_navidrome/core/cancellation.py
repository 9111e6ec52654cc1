"""
Cooperative cancellation for long-running exports.

A CancellationToken is shared between the caller (CLI signal handler,
tests) and the batch matcher / exporters. Workers poll it at safe points:
before each track or chunk, before each playlist update step and before
each star. Nothing is rolled back when it fires.

Usage:
    token = CancellationToken()

    # in another thread or a signal handler
    token.cancel()

    # in the worker loop
    token.raise_if_cancelled()
"""

import threading

from spot_navidrome.core.exceptions import ExportCancelledError


class CancellationToken:
    """
    Thread-safe one-shot cancellation flag.

    Once cancelled, a token stays cancelled. Create a new token for the
    next operation.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation to every holder of this token."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """
        Raise ExportCancelledError if the token has fired.

        Raises:
            ExportCancelledError: If cancel() was called.
        """
        if self._event.is_set():
            raise ExportCancelledError()


def check_cancelled(token: CancellationToken | None) -> None:
    """Raise ExportCancelledError if an optional token has fired."""
    if token is not None:
        token.raise_if_cancelled()
