"""
Readiness polling.

wait_until_ready() calls a probe on a fixed interval until it succeeds or the
scope ends. Waiting on the scope and the tick are the same operation, so a
cancellation is noticed as soon as it happens rather than at the next tick.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .context import Context
from .exceptions import InvalidArgumentError

DEFAULT_INTERVAL = 0.5

Probe = Callable[[Context], Any]


def wait_until_ready(
    ctx: Context, probe: Probe, *, interval: float = DEFAULT_INTERVAL
) -> None:
    """
    Wait until probe(ctx) succeeds or ctx is done.

    The first probe runs one interval after the call. Any exception from the
    probe means "not ready yet"; there is no backoff and no attempt limit
    other than the scope's own deadline.

    Args:
        ctx: Scope bounding the wait
        probe: Callable that raises while the server is not ready
        interval: Seconds between probes

    Raises:
        InvalidArgumentError: If interval is not positive
        ContextCanceledError: If ctx is cancelled first (DeadlineExceededError
            if its deadline passes)
    """
    if interval <= 0:
        raise InvalidArgumentError("poll interval must be positive", interval=interval)

    while True:
        if ctx.wait(interval):
            err = ctx.err()
            assert err is not None
            raise err
        try:
            probe(ctx)
        except Exception:
            continue
        return

