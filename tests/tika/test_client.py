"""Tests for the Tika server client."""

import threading
import time

import httpx
import pytest

from tikaserver.client import Client, request_timeout, user_agent
from tikaserver.context import background, with_cancel, with_timeout
from tikaserver.exceptions import ContextCanceledError
from tikaserver.probe import wait_until_ready
from tests.fixtures.network import RecordingTransport


def _client(handler):
    transport = RecordingTransport(handler)
    return Client("http://localhost:9998/", http=httpx.Client(transport=transport)), transport


@pytest.mark.unit
class TestClientVersion:
    """Tests for Client.version()."""

    def test_returns_version_text(self):
        client, transport = _client(
            lambda request: httpx.Response(200, text="Apache Tika 1.14\n")
        )
        assert client.version(background()) == "Apache Tika 1.14"
        assert str(transport.requests[0].url) == "http://localhost:9998/version"

    def test_error_status_raises(self):
        client, _ = _client(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            client.version(background())

    def test_transport_error_raises(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _client(refuse)
        with pytest.raises(httpx.ConnectError):
            client.version(background())

    def test_cancelled_scope_skips_request(self):
        client, transport = _client(lambda request: httpx.Response(200, text="x"))
        ctx = with_cancel(background())
        ctx.cancel()

        with pytest.raises(ContextCanceledError):
            client.version(ctx)

        assert transport.requests == []

    def test_url_strips_trailing_slash(self):
        client, _ = _client(lambda request: httpx.Response(200))
        assert client.url == "http://localhost:9998"

    def test_close_keeps_borrowed_http_client_open(self):
        http = httpx.Client(transport=RecordingTransport(lambda r: httpx.Response(200)))
        with Client("http://localhost:9998", http=http):
            pass
        assert http.is_closed is False
        http.close()

    def test_owned_http_client_closed(self):
        client = Client("http://localhost:9998")
        client.close()
        assert client._http.is_closed is True


@pytest.mark.unit
class TestClientCancellation:
    """Tests for cancelling a scope while a request is in flight."""

    def test_request_timeout_bounds_late_cancellation(self, silent_server):
        client = Client(silent_server, timeout=0.5)
        ctx = with_cancel(background())
        timer = threading.Timer(0.3, ctx.cancel)

        start = time.monotonic()
        timer.start()
        try:
            with pytest.raises(ContextCanceledError):
                wait_until_ready(ctx, client.version, interval=0.05)
        finally:
            timer.cancel()
            client.close()

        assert time.monotonic() - start < 2.0

    def test_unanswered_request_times_out(self, silent_server):
        with Client(silent_server, timeout=0.2) as client:
            with pytest.raises(httpx.TimeoutException):
                client.version(background())


@pytest.mark.unit
class TestRequestTimeout:
    """Tests for request_timeout()."""

    def test_default_without_deadline(self):
        assert request_timeout(background(), 7.0).read == 7.0

    def test_bounded_by_deadline(self):
        ctx = with_timeout(background(), 0.5)
        assert request_timeout(ctx, 7.0).read <= 0.5
        ctx.cancel()

    def test_user_agent(self):
        assert user_agent().startswith("tikaserver/")
