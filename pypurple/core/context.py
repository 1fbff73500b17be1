"""
Request Context

Caller-supplied cancellation and deadline, propagated through the auth
manager and the HTTP transport. Cancelling a context aborts any pending
retry and makes the next checkpoint raise OperationCancelledError.
"""

import threading
import time
from typing import Optional

from .errors import OperationCancelledError


class RequestContext:
    """
    Cancellation flag plus optional deadline.

    Thread-safe: one thread may cancel while others are blocked in wait().
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: Absolute time.monotonic() value after which the
                      context counts as expired, or None for no deadline
        """
        self.deadline = deadline
        self._event = threading.Event()
        self._reason = "cancelled"

    @classmethod
    def background(cls) -> "RequestContext":
        """Context that is never cancelled and has no deadline"""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "RequestContext":
        """Context that expires `seconds` from now"""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "cancelled"):
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason
        return "deadline exceeded"

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), or None without one"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, waking early on cancellation.

        Returns:
            True if the context was cancelled or expired during the wait
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            return True
        self._event.wait(seconds)
        return self.cancelled

    def raise_if_cancelled(self, operation: str):
        if self.cancelled:
            raise OperationCancelledError(operation, self.reason)


def ensure_context(ctx: Optional[RequestContext]) -> RequestContext:
    """Treat None as a background context"""
    return ctx if ctx is not None else RequestContext.background()
