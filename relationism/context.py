"""Cancellation token threaded through every statement a call executes."""

import threading
import time
from typing import Optional

from .errors import QueryCancelledError


class Context:
    """Carries a cancellation flag and an optional deadline for one call.

    The same instance is passed to the main statement and to every follow-up
    batch query, so cancelling it stops the remaining preload levels.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = threading.Event()
        self._deadline = None if timeout is None else time.monotonic() + timeout

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self, operation: str = "") -> None:
        """Raise QueryCancelledError if the call should stop."""
        suffix = f" before {operation}" if operation else ""
        if self.cancelled:
            raise QueryCancelledError(f"context cancelled{suffix}")
        if self.expired:
            raise QueryCancelledError(f"context deadline exceeded{suffix}")


def check(context: Optional[Context], operation: str = "") -> None:
    """Check an optional context."""
    if context is not None:
        context.check(operation)
