"""
Single-Flight Coordination

Ensures that at most one execution of an operation is in progress at a
time. Callers arriving while it runs block until it finishes and receive the
same result, or the same exception.
"""

import threading
from typing import Any, Callable, Optional

from pypurple.core.context import RequestContext, ensure_context
from pypurple.core.errors import OperationCancelledError


# How often a waiting follower re-checks its own context
FOLLOWER_POLL_INTERVAL = 0.05


class _Call:
    """One in-flight execution and its outcome"""

    def __init__(self):
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """
    Collapse concurrent executions into one.

    The first caller (the leader) runs the function on its own thread;
    followers wait on an event and share the leader's outcome. A follower
    whose own context is cancelled stops waiting without affecting the leader.
    """

    def __init__(self, name: str = "operation"):
        self.name = name
        self._lock = threading.Lock()
        self._call: Optional[_Call] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._call is not None

    def do(self, fn: Callable[[], Any], ctx: Optional[RequestContext] = None) -> Any:
        """
        Run fn, or join the execution already in progress.

        Args:
            fn: Zero-argument function performing the operation
            ctx: The calling thread's context; cancelling it only releases this caller

        Returns:
            The leader's result
        """
        ctx = ensure_context(ctx)

        while True:
            with self._lock:
                call = self._call
                leader = call is None
                if leader:
                    call = self._call = _Call()

            if leader:
                return self._lead(call, fn)

            try:
                return self._follow(call, ctx)
            except OperationCancelledError:
                # The leader was cancelled, not us: start or join a fresh flight
                if ctx.cancelled or call.error is None:
                    raise

    def _lead(self, call: _Call, fn: Callable[[], Any]) -> Any:
        try:
            call.result = fn()
            return call.result
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                self._call = None
            call.done.set()

    def _follow(self, call: _Call, ctx: RequestContext) -> Any:
        while not call.done.wait(FOLLOWER_POLL_INTERVAL):
            ctx.raise_if_cancelled(self.name)

        if call.error is not None:
            raise call.error
        return call.result
