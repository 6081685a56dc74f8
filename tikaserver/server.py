"""
Tika server process supervision.

A Server describes one server instance (jar, port, URL) and does not run
anything by itself. Server.start() launches the Java process, waits until it
answers requests and returns a RunningServer that owns the process. The
process lifetime is bound to a cancellable scope: stopping the RunningServer,
or cancelling the scope passed to start(), terminates the process.

Example Usage:
    server = Server("tika-server-1.14.jar")
    running = server.start(background(), startup_timeout=60)
    try:
        print(Client(server.url).version(background()))
    finally:
        running.stop()

There is no need to create a Server for an already running Tika server; pass
its URL directly to a Client.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import IO, Any
from urllib.parse import urlsplit

from .client import Client
from .context import Context, with_cancel, with_timeout
from .exceptions import (
    ContextCanceledError,
    InvalidArgumentError,
    ReadinessError,
    StartError,
)
from .probe import DEFAULT_INTERVAL, Probe, wait_until_ready

logger = logging.getLogger(__name__)

DEFAULT_PORT = "9998"
DEFAULT_SHUTDOWN_TIMEOUT = 5.0

# Bounds on the diagnostic output kept from the server
OUTPUT_MAX_LINES = 1000
OUTPUT_CAPTURE_TIMEOUT = 5.0

# Floor on the per-request timeout of the default readiness probe
PROBE_MIN_TIMEOUT = 1.0


class ServerState(str, Enum):
    """Lifecycle state of a started server."""

    NOT_STARTED = "not_started"
    LAUNCHING = "launching"
    READY = "ready"
    TERMINATED = "terminated"
    FAILED_TO_START = "failed_to_start"
    FAILED_READINESS = "failed_readiness"


def _build_url(port: str) -> str:
    url = f"http://localhost:{port}"
    try:
        parts = urlsplit(url)
        valid = (
            port.isdigit()
            and parts.port is not None
            and parts.path == ""
            and not parts.query
            and not parts.fragment
        )
    except ValueError as e:
        raise InvalidArgumentError(f"invalid port {port!r}: {e}") from e
    if not valid:
        raise InvalidArgumentError(f"invalid port {port!r}", url=url)
    return parts.geturl()


@dataclass(frozen=True)
class Server:
    """
    A Tika server instance. The default port is 9998.

    Attributes:
        jar: Path to the tika-server jar
        port: Port the server listens on
        java: Java executable used to run the jar
        url: Base URL of the server, derived from port
    """

    jar: str
    port: str = DEFAULT_PORT
    java: str = "java"
    url: str = field(init=False)

    def __post_init__(self) -> None:
        if not self.jar:
            raise InvalidArgumentError("no jar file specified")
        port = str(self.port) if self.port else DEFAULT_PORT
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "url", _build_url(port))

    @property
    def command(self) -> list[str]:
        """Command line that runs the server bound to its port."""
        return [self.java, "-jar", self.jar, "-p", self.port]

    def start(
        self,
        ctx: Context,
        *,
        probe: Probe | None = None,
        interval: float = DEFAULT_INTERVAL,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        startup_timeout: float | None = None,
        lg: Any = None,
    ) -> RunningServer:
        """
        Start the server and wait until it responds to requests.

        The caller must stop the returned RunningServer exactly once when
        finished with it. Cancelling ctx also terminates the process, so a
        deadline on ctx limits the whole server lifetime; use startup_timeout
        to bound only the wait.

        Args:
            ctx: Scope bounding both the startup wait and the process lifetime
            probe: Readiness check; defaults to Client(url).version
            interval: Seconds between readiness checks
            shutdown_timeout: Seconds to wait after SIGTERM before SIGKILL
            startup_timeout: Optional bound on the readiness wait only; unlike
                a deadline on ctx it does not limit the process lifetime
            lg: Logger (defaults to the module logger)

        Returns:
            RunningServer owning the process

        Raises:
            StartError: If the process could not be launched
            ReadinessError: If ctx ended before the server became ready; the
                process has been terminated and its output is attached
        """
        lg = lg or logger
        running = RunningServer(self, with_cancel(ctx), shutdown_timeout, lg)

        try:
            running._launch()
        except (OSError, ContextCanceledError) as e:
            running.stop()
            running._set_state(ServerState.FAILED_TO_START)
            raise StartError(
                f"error starting server: {e}", command=" ".join(self.command)
            ) from e

        client = None
        if probe is None:
            # A cancelled wait is noticed once the request in flight times out
            client = Client(self.url, timeout=max(interval, PROBE_MIN_TIMEOUT))
            probe = client.version
        wait_ctx = running.context
        if startup_timeout is not None:
            wait_ctx = with_timeout(running.context, startup_timeout)
        try:
            wait_until_ready(wait_ctx, probe, interval=interval)
        except ContextCanceledError as e:
            running.stop()
            output, capture_error = running._capture()
            running._set_state(ServerState.FAILED_READINESS)
            raise ReadinessError(
                "error starting server",
                cause=e,
                output=output,
                capture_error=capture_error,
                url=self.url,
            ) from e
        except BaseException:
            running.stop()
            raise
        finally:
            if wait_ctx is not running.context:
                wait_ctx.cancel()
            if client is not None:
                client.close()

        running._set_state(ServerState.READY)
        lg.info("tika server ready", extra={"url": self.url, "pid": running.pid})
        return running


class RunningServer:
    """
    A launched server process and the scope it is bound to.

    stop() is the teardown: it cancels the scope, which terminates the
    process, and waits for the process to exit. Calling the object, or leaving
    a with block, also stops it. Stopping more than once is harmless.
    """

    def __init__(
        self, server: Server, ctx: Context, shutdown_timeout: float, lg: Any
    ) -> None:
        self._server = server
        self._ctx = ctx
        self._shutdown_timeout = shutdown_timeout
        self._lg = lg
        self._proc: subprocess.Popen[bytes] | None = None
        self._output: deque[str] = deque(maxlen=OUTPUT_MAX_LINES)
        self._read_error: Exception | None = None
        self._reader: threading.Thread | None = None
        self._state = ServerState.NOT_STARTED
        self._lock = threading.Lock()

    @property
    def server(self) -> Server:
        return self._server

    @property
    def url(self) -> str:
        return self._server.url

    @property
    def context(self) -> Context:
        """Scope the process is bound to."""
        return self._ctx

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        """Exit code once the process has exited, else None."""
        return self._proc.poll() if self._proc is not None else None

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def state(self) -> ServerState:
        with self._lock:
            state = self._state
        if state is ServerState.READY and not self.running:
            return ServerState.TERMINATED
        return state

    def output(self) -> str:
        """Combined stdout/stderr captured from the server so far."""
        return "".join(self._output)

    def stop(self) -> None:
        """Terminate the server process and release its scope."""
        self._ctx.cancel()
        # The scope may already have been ended by another thread
        self._terminate()
        with self._lock:
            if self._state is ServerState.READY:
                self._state = ServerState.TERMINATED

    def _set_state(self, state: ServerState) -> None:
        with self._lock:
            self._state = state
        self._lg.debug(
            "tika server state changed",
            extra={"state": state.value, "url": self.url},
        )

    def _launch(self) -> None:
        self._set_state(ServerState.LAUNCHING)
        err = self._ctx.err()
        if err is not None:
            raise err

        command = self._server.command
        self._lg.info("starting tika server", extra={"command": " ".join(command)})
        self._proc = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        assert self._proc.stdout is not None
        self._reader = threading.Thread(
            target=self._drain,
            args=(self._proc.stdout,),
            daemon=True,
            name=f"tika-output-{self._proc.pid}",
        )
        self._reader.start()
        self._ctx.add_done_callback(self._terminate)

    def _drain(self, stream: IO[bytes]) -> None:
        """Read server output until EOF so the process never blocks on a full pipe."""
        try:
            for line in iter(stream.readline, b""):
                self._output.append(line.decode(errors="replace"))
        except (OSError, ValueError) as e:
            self._read_error = e
        finally:
            stream.close()

    def _terminate(self) -> None:
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return

        self._lg.debug("stopping tika server", extra={"pid": proc.pid})
        proc.terminate()
        try:
            proc.wait(timeout=self._shutdown_timeout)
        except subprocess.TimeoutExpired:
            self._lg.warning(
                f"tika server did not terminate within {self._shutdown_timeout}s, "
                "sending SIGKILL",
                extra={"pid": proc.pid},
            )
            proc.kill()
            proc.wait()
        self._lg.info("tika server stopped", extra={"pid": proc.pid})

    def _capture(self) -> tuple[str, Exception | None]:
        """Collect the output of an exited process, with any error reading it."""
        if self._reader is not None:
            self._reader.join(timeout=OUTPUT_CAPTURE_TIMEOUT)
            if self._reader.is_alive():
                return self.output(), TimeoutError(
                    f"server output not closed after {OUTPUT_CAPTURE_TIMEOUT}s"
                )
        return self.output(), self._read_error

    def __call__(self) -> None:
        self.stop()

    def __enter__(self) -> RunningServer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"<RunningServer {self.url} pid={self.pid} state={self.state.value}>"
