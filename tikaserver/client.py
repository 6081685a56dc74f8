"""
Minimal Tika server client.

Only the call needed to tell whether a server is up is implemented:
version() returns the server's version string from GET /version.
"""

from __future__ import annotations

from types import TracebackType

import httpx

from .context import Context

# Default per-request timeout when the scope has no deadline
DEFAULT_TIMEOUT = 10.0


def user_agent() -> str:
    """User-Agent header sent by tikaserver HTTP clients."""
    from . import __version__

    return f"tikaserver/{__version__}"


def new_http_client(**kwargs: object) -> httpx.Client:
    """Create an httpx client with tikaserver defaults (redirects followed)."""
    kwargs.setdefault("follow_redirects", True)
    kwargs.setdefault("headers", {"User-Agent": user_agent()})
    return httpx.Client(**kwargs)  # type: ignore[arg-type]


def request_timeout(ctx: Context, default: float = DEFAULT_TIMEOUT) -> httpx.Timeout:
    """Build a request timeout that does not outlive the scope's deadline."""
    remaining = ctx.remaining()
    if remaining is None:
        return httpx.Timeout(default)
    return httpx.Timeout(min(default, max(remaining, 0.001)))


class Client:
    """
    Client for a running Tika server.

    Example:
        with Client("http://localhost:9998") as c:
            print(c.version(ctx))
    """

    def __init__(
        self,
        url: str,
        *,
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            url: Base URL of the server (e.g. Server.url)
            http: httpx client to use; one is created (and owned) if None
            timeout: Upper bound in seconds on each request. A request in
                flight is not interrupted by cancelling its scope, so this
                also bounds how late a cancellation is noticed.
        """
        self._url = url.rstrip("/")
        self._timeout = timeout
        self._owns_http = http is None
        self._http = http if http is not None else new_http_client()

    @property
    def url(self) -> str:
        return self._url

    def version(self, ctx: Context) -> str:
        """
        Get the server version string.

        Raises:
            ContextCanceledError: If ctx is already done
            httpx.HTTPError: If the server is unreachable or answers non-2xx
        """
        err = ctx.err()
        if err is not None:
            raise err
        resp = self._http.get(
            f"{self._url}/version", timeout=request_timeout(ctx, self._timeout)
        )
        resp.raise_for_status()
        return resp.text.strip()

    def close(self) -> None:
        """Close the underlying httpx client if this client created it."""
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
