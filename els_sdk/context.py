"""
Call Contexts
=============
Deadline and cancellation tokens passed into every suspending call.

A context either never expires (``Context.background()``) or carries a
deadline on the monotonic clock. Cancelling a context also cancels every
context derived from it.
"""

import asyncio
import threading
import time
import weakref
from typing import Awaitable, List, Optional, Tuple, TypeVar

from .exceptions import Cancelled, ContextError, DeadlineExceeded

T = TypeVar("T")


def _wake(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)


class Context:
    """Cancellation token with an optional deadline."""

    def __init__(self, deadline: Optional[float] = None, parent: Optional["Context"] = None):
        self.parent = parent
        self._deadline = deadline
        self._lock = threading.Lock()
        self._cancelled = False
        self._children: "weakref.WeakSet[Context]" = weakref.WeakSet()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []
        if parent is not None:
            with parent._lock:
                parent._children.add(self)
            if parent.deadline is not None:
                if self._deadline is None or parent.deadline < self._deadline:
                    self._deadline = parent.deadline

    @classmethod
    def background(cls) -> "Context":
        """Return a context that never expires."""
        return cls()

    @classmethod
    def with_timeout(cls, timeout: float, parent: Optional["Context"] = None) -> "Context":
        """Return a context whose deadline is ``timeout`` seconds from now."""
        return cls(deadline=time.monotonic() + timeout, parent=parent)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None if there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        """
        Cancel this context and every context derived from it.

        Safe to call from any thread; waiting calls are woken on their own
        event loop.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            waiters = list(self._waiters)
            children = list(self._children)
        for loop, waiter in waiters:
            try:
                loop.call_soon_threadsafe(_wake, waiter)
            except RuntimeError:
                # Loop already closed; nothing left to wake
                pass
        for child in children:
            child.cancel()

    def err(self) -> Optional[ContextError]:
        """Return why the context is done, or None while it is live."""
        if self.parent is not None:
            parent_err = self.parent.err()
            if parent_err is not None:
                return parent_err
        with self._lock:
            cancelled = self._cancelled
        if cancelled:
            return Cancelled()
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceeded()
        return None

    def done(self) -> bool:
        return self.err() is not None

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the context ends first.

        If the deadline elapses or the context is cancelled before the
        awaitable completes, it is cancelled and the context's error is
        raised in its place.
        """
        task = asyncio.ensure_future(awaitable)
        error = self.err()
        if error is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise error

        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        entry = (loop, waiter)
        with self._lock:
            self._waiters.append(entry)
            cancelled = self._cancelled
        if cancelled:
            waiter.set_result(None)
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            with self._lock:
                self._waiters.remove(entry)
            if not waiter.done():
                waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise self.err() or DeadlineExceeded()
