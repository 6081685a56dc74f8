"""Tests for readiness polling."""

import threading
import time

import pytest

from tikaserver.context import background, with_cancel, with_timeout
from tikaserver.exceptions import (
    ContextCanceledError,
    DeadlineExceededError,
    InvalidArgumentError,
)
from tikaserver.probe import wait_until_ready


class CountingProbe:
    """Probe that fails a fixed number of times, then succeeds."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0

    def __call__(self, ctx) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("connection refused")
        return "Apache Tika 1.14"


@pytest.mark.unit
class TestWaitUntilReady:
    """Tests for wait_until_ready()."""

    def test_cancelled_scope_never_probes(self):
        ctx = with_cancel(background())
        ctx.cancel()
        probe = CountingProbe()

        with pytest.raises(ContextCanceledError):
            wait_until_ready(ctx, probe, interval=0.01)

        assert probe.calls == 0

    def test_returns_on_first_success(self):
        probe = CountingProbe()
        wait_until_ready(background(), probe, interval=0.01)
        assert probe.calls == 1

    def test_retries_until_success(self):
        probe = CountingProbe(failures=3)
        wait_until_ready(background(), probe, interval=0.01)
        assert probe.calls == 4

    def test_any_exception_means_not_ready(self):
        errors = [ValueError("bad"), OSError("refused"), RuntimeError("later")]

        def probe(ctx):
            if errors:
                raise errors.pop()

        wait_until_ready(background(), probe, interval=0.01)
        assert errors == []

    def test_deadline_ends_wait(self):
        probe = CountingProbe(failures=10**6)
        ctx = with_timeout(background(), 0.2)

        start = time.monotonic()
        with pytest.raises(DeadlineExceededError):
            wait_until_ready(ctx, probe, interval=0.02)

        assert time.monotonic() - start < 2.0
        assert probe.calls > 0

    def test_cancel_interrupts_long_interval(self):
        ctx = with_cancel(background())
        threading.Timer(0.05, ctx.cancel).start()
        probe = CountingProbe()

        start = time.monotonic()
        with pytest.raises(ContextCanceledError):
            wait_until_ready(ctx, probe, interval=30.0)

        assert time.monotonic() - start < 5.0
        assert probe.calls == 0

    def test_probe_receives_scope(self):
        seen = []
        ctx = with_cancel(background())
        wait_until_ready(ctx, seen.append, interval=0.01)
        assert seen == [ctx]

    @pytest.mark.parametrize("interval", [0, -1.0])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(InvalidArgumentError):
            wait_until_ready(background(), CountingProbe(), interval=interval)
