"""
Cancellable lifetime scopes.

A Context is a thread-safe "done" signal shared between an operation and the
resources it owns. Operations poll or wait on it, and resources (child
processes, open HTTP responses) register callbacks that release them the
moment the scope ends.

Scopes form a tree: cancelling a parent cancels every child with the parent's
error, and a child's deadline is never later than its parent's.

Example Usage:
    ctx = with_timeout(background(), 30)
    try:
        server.start(ctx)
    finally:
        ctx.cancel()

    # Or as a context manager (cancelled on exit)
    with with_cancel(background()) as ctx:
        download_server(ctx, "1.14", "tika.jar")
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from .exceptions import ContextCanceledError, DeadlineExceededError

logger = logging.getLogger(__name__)


class Context:
    """
    Cancellable scope with an optional deadline.

    Do not construct directly; use background(), with_cancel(),
    with_timeout() or with_deadline().
    """

    def __init__(
        self, parent: Context | None = None, deadline: float | None = None
    ) -> None:
        """
        Initialize the scope.

        Args:
            parent: Parent scope whose cancellation propagates to this one
            deadline: Absolute time.monotonic() value after which the scope
                cancels itself
        """
        if parent is not None and parent.deadline is not None:
            deadline = (
                parent.deadline if deadline is None else min(deadline, parent.deadline)
            )

        self._parent = parent
        self._deadline = deadline
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: ContextCanceledError | None = None
        self._callbacks: dict[int, Callable[[], Any]] = {}
        self._next_id = 0
        self._timer: threading.Timer | None = None
        self._parent_handle: int | None = None

        if parent is not None:
            self._parent_handle = parent.add_done_callback(self._on_parent_done)

        if deadline is not None and not self._done.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._cancel(DeadlineExceededError("context deadline exceeded"))
            else:
                self._timer = threading.Timer(
                    remaining,
                    self._cancel,
                    args=(DeadlineExceededError("context deadline exceeded"),),
                )
                self._timer.daemon = True
                self._timer.start()

    @property
    def deadline(self) -> float | None:
        """Absolute time.monotonic() deadline, or None if there is none."""
        return self._deadline

    def remaining(self) -> float | None:
        """Seconds left until the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def done(self) -> bool:
        """Check if the scope has been cancelled or its deadline has passed."""
        return self._done.is_set()

    def err(self) -> ContextCanceledError | None:
        """
        Get the reason the scope ended.

        Returns:
            ContextCanceledError or DeadlineExceededError once done, else None
        """
        with self._lock:
            return self._err

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the scope is done or the timeout elapses.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            True if the scope is done
        """
        return self._done.wait(timeout)

    def cancel(self) -> None:
        """Cancel the scope. Cancelling an already finished scope is a no-op."""
        self._cancel(ContextCanceledError("context canceled"))

    def add_done_callback(self, fn: Callable[[], Any]) -> int:
        """
        Register a function to run once when the scope ends.

        If the scope has already ended, fn runs immediately in the caller's
        thread. Otherwise it runs in whichever thread ends the scope.

        Returns:
            Handle for remove_done_callback()
        """
        with self._lock:
            handle = self._next_id
            self._next_id += 1
            if not self._done.is_set():
                self._callbacks[handle] = fn
                return handle
        self._run_callback(fn)
        return handle

    def remove_done_callback(self, handle: int) -> None:
        """Unregister a callback that has not run yet."""
        with self._lock:
            self._callbacks.pop(handle, None)

    def _on_parent_done(self) -> None:
        assert self._parent is not None
        err = self._parent.err()
        self._cancel(err if err is not None else ContextCanceledError("context canceled"))

    def _cancel(self, err: ContextCanceledError) -> None:
        with self._lock:
            if self._done.is_set():
                return
            self._err = err
            self._done.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        if self._timer is not None:
            self._timer.cancel()
        if self._parent is not None and self._parent_handle is not None:
            self._parent.remove_done_callback(self._parent_handle)

        for fn in callbacks:
            self._run_callback(fn)

    @staticmethod
    def _run_callback(fn: Callable[[], Any]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("error in context done callback")

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *args: object) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "done" if self.done() else "active"
        return f"<Context {state} deadline={self._deadline}>"


_BACKGROUND: Context | None = None


def background() -> Context:
    """Get the root scope. It is never cancelled and has no deadline."""
    global _BACKGROUND
    if _BACKGROUND is None:
        _BACKGROUND = _Background()
    return _BACKGROUND


def with_cancel(parent: Context) -> Context:
    """Create a child scope that can be cancelled independently of its parent."""
    return Context(parent)


def with_deadline(parent: Context, deadline: float) -> Context:
    """
    Create a child scope that cancels itself at an absolute deadline.

    Args:
        parent: Parent scope
        deadline: time.monotonic() value
    """
    return Context(parent, deadline=deadline)


def with_timeout(parent: Context, seconds: float) -> Context:
    """Create a child scope that cancels itself after the given number of seconds."""
    return with_deadline(parent, time.monotonic() + seconds)


class _Background(Context):
    """Root scope; cancel() is ignored."""

    def cancel(self) -> None:
        pass

    def __repr__(self) -> str:
        return "<Context background>"
