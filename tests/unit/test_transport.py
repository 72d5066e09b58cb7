import logging

import httpx
import pytest

from eventsource_client._errors import ReadError, TransportError
from eventsource_client._transport import (
    ENV_HTTP_DEBUG,
    AsyncHttpxTransport,
    HttpConfig,
    HttpxTransport,
    _redact_headers,
)

SSE_HEADERS = {"Content-Type": "text/event-stream"}


class BrokenStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b"data: first\n\n"
        raise httpx.ReadError("connection reset")


class AsyncBrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b"data: first\n\n"
        raise httpx.ReadError("connection reset")


def make_transport(handler) -> HttpxTransport:
    return HttpxTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


def make_async_transport(handler) -> AsyncHttpxTransport:
    return AsyncHttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_open_sends_get_with_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["headers"] = dict(request.headers)
        return httpx.Response(200, headers=SSE_HEADERS, content=b"data: x\n\n")

    transport = make_transport(handler)
    resp = transport.open("https://example.com/events", {"Accept": "text/event-stream", "Last-Event-ID": "7"})

    assert seen["method"] == "GET"
    assert seen["url"] == "https://example.com/events"
    assert seen["headers"]["accept"] == "text/event-stream"
    assert seen["headers"]["last-event-id"] == "7"
    assert resp.status_code == 200
    assert resp.reason_phrase == "OK"
    assert resp.headers["content-type"] == "text/event-stream"
    assert b"".join(resp.iter_bytes()) == b"data: x\n\n"
    resp.close()


def test_open_wraps_connect_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = make_transport(handler)

    with pytest.raises(TransportError) as exc:
        transport.open("https://example.com/events", {})

    assert isinstance(exc.value.__cause__, httpx.ConnectError)
    assert "example.com" in str(exc.value)


def test_open_wraps_invalid_urls():
    transport = make_transport(lambda request: httpx.Response(200))

    with pytest.raises(TransportError):
        transport.open("http://example.com:notaport/events", {})


def test_iter_bytes_wraps_read_errors():
    transport = make_transport(lambda request: httpx.Response(200, headers=SSE_HEADERS, stream=BrokenStream()))
    resp = transport.open("https://example.com/events", {})

    chunks = []
    with pytest.raises(ReadError) as exc:
        for chunk in resp.iter_bytes():
            chunks.append(chunk)

    assert chunks == [b"data: first\n\n"]
    assert isinstance(exc.value.__cause__, httpx.ReadError)


def test_external_client_is_not_closed():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
    transport = HttpxTransport(client=client)

    transport.close()

    assert not client.is_closed
    client.close()


def test_owned_client_is_closed_and_uses_config_timeouts():
    transport = HttpxTransport(config=HttpConfig(connect_timeout_s=1.5, read_timeout_s=20.0))
    client = transport._client

    assert client.timeout.connect == 1.5
    assert client.timeout.read == 20.0

    transport.close()

    assert client.is_closed


def test_default_read_timeout_is_unbounded():
    transport = HttpxTransport()

    assert transport._client.timeout.read is None
    assert transport._client.timeout.connect == 10.0
    transport.close()


def test_redact_headers():
    out = _redact_headers({"Authorization": "Bearer secret", "cookie": "a=b", "Accept": "text/event-stream"})

    assert out["Authorization"] == "***REDACTED***"
    assert out["cookie"] == "***REDACTED***"
    assert out["Accept"] == "text/event-stream"


def test_no_debug_hooks_by_default(monkeypatch):
    monkeypatch.delenv(ENV_HTTP_DEBUG, raising=False)
    transport = HttpxTransport()

    assert transport._client.event_hooks["request"] == []
    assert transport._client.event_hooks["response"] == []
    transport.close()


def test_debug_hooks_log_request_and_skip_event_stream_body(monkeypatch, caplog):
    # Activa el modo debug de HTTP para que se registren los hooks de logging.
    monkeypatch.setenv(ENV_HTTP_DEBUG, "1")
    transport = HttpxTransport()
    request_hook = transport._client.event_hooks["request"][0]
    response_hook = transport._client.event_hooks["response"][0]

    request = httpx.Request(
        "GET",
        "https://example.com/events",
        headers={"Authorization": "Bearer secret-key", "Accept": "text/event-stream"},
    )
    response = httpx.Response(200, headers=SSE_HEADERS, content=b"data: x\n\n", request=request)

    with caplog.at_level(logging.WARNING):
        request_hook(request)
        response_hook(response)

    text = caplog.text
    assert "HTTPX REQUEST GET https://example.com/events" in text
    assert "secret-key" not in text
    assert "***REDACTED***" in text
    assert "HTTPX RESPONSE GET https://example.com/events -> 200" in text
    assert "event-stream; not auto-logged" in text
    assert "data: x" not in text
    transport.close()


def test_debug_hooks_log_non_stream_body(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "true")
    transport = HttpxTransport()
    response_hook = transport._client.event_hooks["response"][0]
    request = httpx.Request("GET", "https://example.com/events")
    response = httpx.Response(404, headers={"Content-Type": "text/plain"}, content=b"no such stream", request=request)

    with caplog.at_level(logging.WARNING):
        response_hook(response)

    assert "HTTPX RESPONSE body=no such stream" in caplog.text
    transport.close()


@pytest.mark.asyncio
async def test_async_open_and_read():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "text/event-stream"
        return httpx.Response(200, headers=SSE_HEADERS, content=b"data: x\n\n")

    transport = make_async_transport(handler)
    resp = await transport.open("https://example.com/events", {"Accept": "text/event-stream"})

    chunks = [chunk async for chunk in resp.aiter_bytes()]

    assert resp.status_code == 200
    assert b"".join(chunks) == b"data: x\n\n"
    await resp.aclose()
    await transport.aclose()


@pytest.mark.asyncio
async def test_async_open_wraps_connect_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    transport = make_async_transport(handler)

    with pytest.raises(TransportError):
        await transport.open("https://example.com/events", {})


@pytest.mark.asyncio
async def test_async_read_errors_are_wrapped():
    transport = make_async_transport(
        lambda request: httpx.Response(200, headers=SSE_HEADERS, stream=AsyncBrokenStream())
    )
    resp = await transport.open("https://example.com/events", {})

    with pytest.raises(ReadError):
        async for _ in resp.aiter_bytes():
            pass


@pytest.mark.asyncio
async def test_async_debug_hooks(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "yes")
    transport = AsyncHttpxTransport()
    request_hook = transport._client.event_hooks["request"][0]
    request = httpx.Request("GET", "https://example.com/events", headers={"Cookie": "session=abc"})

    with caplog.at_level(logging.WARNING):
        await request_hook(request)

    assert "HTTPX REQUEST GET https://example.com/events" in caplog.text
    assert "session=abc" not in caplog.text
    await transport.aclose()
