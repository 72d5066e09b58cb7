from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Iterator, Mapping, Protocol

import httpx

from eventsource_client._errors import ReadError, TransportError

ENV_HTTP_DEBUG = "EVENTSOURCE_HTTP_DEBUG"

_REDACTED_HEADERS = ("authorization", "proxy-authorization", "cookie")


class TransportResponse(Protocol):
    """An HTTP response whose body has not been read yet."""

    status_code: int
    headers: Mapping[str, str]

    def iter_bytes(self) -> Iterator[bytes]: ...

    def close(self) -> None: ...


class Transport(Protocol):
    """
    Anything able to issue a streaming GET.

    ``open`` raises TransportError when the request cannot be made; iterating
    the body raises ReadError on I/O failures.
    """

    def open(self, url: str, headers: Mapping[str, str]) -> TransportResponse: ...


class AsyncTransportResponse(Protocol):
    status_code: int
    headers: Mapping[str, str]

    def aiter_bytes(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class AsyncTransport(Protocol):
    async def open(self, url: str, headers: Mapping[str, str]) -> AsyncTransportResponse: ...


@dataclass(frozen=True, slots=True)
class HttpConfig:
    connect_timeout_s: float = 10.0
    # None waits forever for the next byte: event streams may idle for long.
    read_timeout_s: float | None = None

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(None, connect=self.connect_timeout_s, read=self.read_timeout_s)


def _debug_enabled() -> bool:
    return os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}


def _redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    out = dict(headers)
    for k in list(out):
        if k.lower() in _REDACTED_HEADERS:
            out[k] = "***REDACTED***"
    return out


def _log_request(request: httpx.Request) -> None:
    logging.warning("HTTPX REQUEST %s %s", request.method, request.url)
    logging.warning("HTTPX REQUEST headers=%s", _redact_headers(request.headers))


def _log_response_head(response: httpx.Response) -> bool:
    """Log status and headers; return True when the body may be logged too."""
    req = response.request
    logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
    logging.warning("HTTPX RESPONSE headers=%s", _redact_headers(response.headers))

    ctype = response.headers.get("content-type", "")
    if "text/event-stream" in ctype.lower():
        logging.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
        return False
    return True


EventHooksDict = dict[str, list[Callable[..., Any]]]


def _sync_hooks() -> EventHooksDict:
    def _log_response(response: httpx.Response) -> None:
        if not _log_response_head(response):
            return
        try:
            response.read()
            logging.warning("HTTPX RESPONSE body=%s", response.text)
        except httpx.HTTPError as e:
            logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

    return {"request": [_log_request], "response": [_log_response]}


def _async_hooks() -> EventHooksDict:
    async def _log_request_async(request: httpx.Request) -> None:
        _log_request(request)

    async def _log_response_async(response: httpx.Response) -> None:
        if not _log_response_head(response):
            return
        try:
            await response.aread()
            logging.warning("HTTPX RESPONSE body=%s", response.text)
        except httpx.HTTPError as e:
            logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

    return {"request": [_log_request_async], "response": [_log_response_async]}


class HttpxStreamResponse:
    """Adapts a streaming ``httpx.Response`` to the TransportResponse protocol."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    def iter_bytes(self) -> Iterator[bytes]:
        try:
            yield from self._response.iter_bytes()
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise ReadError(f"error reading event stream: {exc!r}") from exc

    def close(self) -> None:
        self._response.close()


class AsyncHttpxStreamResponse:
    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise ReadError(f"error reading event stream: {exc!r}") from exc

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxTransport:
    """
    Transport backed by ``httpx.Client``:
    - GET with ``stream=True``, so the body is consumed incrementally
    - optional wire logging (EVENTSOURCE_HTTP_DEBUG)
    - an externally supplied client is used as is and never closed here
    """

    def __init__(self, *, config: HttpConfig | None = None, client: httpx.Client | None = None) -> None:
        self._config = config or HttpConfig()
        self._owns_client = client is None
        if client is None:
            hooks = _sync_hooks() if _debug_enabled() else {}
            client = httpx.Client(timeout=self._config.timeout(), event_hooks=hooks)
        self._client = client

    def open(self, url: str, headers: Mapping[str, str]) -> HttpxStreamResponse:
        try:
            request = self._client.build_request("GET", url, headers=dict(headers))
            response = self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"GET {url} failed: {exc!r}") from exc
        return HttpxStreamResponse(response)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class AsyncHttpxTransport:
    """Same as HttpxTransport, on top of ``httpx.AsyncClient``."""

    def __init__(self, *, config: HttpConfig | None = None, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or HttpConfig()
        self._owns_client = client is None
        if client is None:
            hooks = _async_hooks() if _debug_enabled() else {}
            client = httpx.AsyncClient(timeout=self._config.timeout(), event_hooks=hooks)
        self._client = client

    async def open(self, url: str, headers: Mapping[str, str]) -> AsyncHttpxStreamResponse:
        try:
            request = self._client.build_request("GET", url, headers=dict(headers))
            response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"GET {url} failed: {exc!r}") from exc
        return AsyncHttpxStreamResponse(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
