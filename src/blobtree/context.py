"""Cancellation context for backend calls.

Every backend request made on behalf of a ``BucketFS`` receives the root's
``Context``. Backends call ``check()`` before each request and between
listing pages, and pass ``remaining()`` as the per-request timeout where the
client supports one. Cancellation is cooperative: a request already in
flight finishes or times out on its own.
"""

from __future__ import annotations

import threading
import time

from blobtree.errors import OperationCancelledError


class Context:
    """A cancellable context with an optional deadline."""

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Cancel the context; subsequent backend calls fail."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def deadline(self) -> float | None:
        """Return the deadline on the ``time.monotonic`` clock, if any."""
        return self._deadline

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def err(self) -> OperationCancelledError | None:
        """Return the cancellation error, or None while the context is live."""
        if self._cancelled.is_set():
            return OperationCancelledError("context canceled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return OperationCancelledError("context deadline exceeded")
        return None

    def check(self) -> None:
        """Raise ``OperationCancelledError`` if the context is done."""
        err = self.err()
        if err is not None:
            raise err


def background() -> Context:
    """Return a context that is never cancelled and has no deadline."""
    return Context()
