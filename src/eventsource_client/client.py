"""
Reconnecting Server-Sent Events clients.

EventSourceClient pulls events one at a time and blocks while connecting,
waiting out the retry interval and reading the body. AsyncEventSourceClient
offers the same behavior to asyncio code. Both keep the Last-Event-ID and the
retry interval across reconnects, and reconnect silently when the server ends
the stream cleanly.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Mapping

from eventsource_client._config import EventSourceConfig
from eventsource_client._errors import (
    EventSourceError,
    HttpStatusError,
    InvalidContentType,
    MissingContentType,
    ReadError,
    TransportError,
)
from eventsource_client._event import Dispatch, Event, SetRetry, parse_event_line
from eventsource_client._lines import LineBuffer
from eventsource_client._transport import (
    AsyncHttpxTransport,
    AsyncTransport,
    AsyncTransportResponse,
    HttpxTransport,
    Transport,
    TransportResponse,
)

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"
_PROTOCOL_HEADERS = {"accept", "last-event-id"}


@dataclass(slots=True)
class ClientState:
    """Everything a client remembers between connections."""

    retry_ms: int
    last_event_id: str | None = None
    last_attempt_time: float | None = None

    def remaining_wait(self, now: float) -> float:
        """Seconds still to wait before the next connection attempt."""
        if self.last_attempt_time is None:
            return 0.0
        remaining = self.retry_ms / 1000 - (now - self.last_attempt_time)
        if remaining <= 0:
            return 0.0
        # time.sleep and friends overflow past the platform timeout limit.
        return min(remaining, threading.TIMEOUT_MAX)

    def request_headers(self, extra: Mapping[str, str]) -> dict[str, str]:
        headers = {k: v for k, v in extra.items() if k.lower() not in _PROTOCOL_HEADERS}
        headers["Accept"] = EVENT_STREAM
        if self.last_event_id is not None:
            headers["Last-Event-ID"] = self.last_event_id
        return headers

    def feed(self, raw_line: bytes, event: Event) -> bool:
        """
        Run one body line through the parser.

        Returns:
            True when ``event`` has been dispatched and is ready for the caller.
        """
        result = parse_event_line(raw_line.decode("utf-8", "replace"), event)
        if isinstance(result, Dispatch):
            if event.id:
                self.last_event_id = event.id
            return True
        if isinstance(result, SetRetry):
            logger.debug("Stream set retry interval to %d ms", result.retry_ms)
            self.retry_ms = result.retry_ms
        return False


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def check_response(response: TransportResponse | AsyncTransportResponse) -> None:
    """
    Verify that a response can be consumed as an event stream.

    Raises:
        HttpStatusError: If the status is outside the 2xx range.
        MissingContentType: If there is no Content-Type header.
        InvalidContentType: If the media type (parameters ignored) is not
            text/event-stream.
    """
    status = response.status_code
    if not 200 <= status < 300:
        raise HttpStatusError(status_code=status, reason_phrase=getattr(response, "reason_phrase", None))

    content_type = _get_header(response.headers, "content-type")
    if content_type is None:
        raise MissingContentType()
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != EVENT_STREAM:
        raise InvalidContentType(content_type=content_type)


def _resolve_config(config: EventSourceConfig | None, retry_ms: int | None) -> EventSourceConfig:
    if config is None:
        config = EventSourceConfig()
    if retry_ms is not None:
        config = EventSourceConfig.model_validate({**config.model_dump(), "retry_ms": retry_ms})
    return config


class EventSourceClient:
    """
    Blocking client for a Server-Sent Events endpoint.

    No request is made until the first pull. Iterating never ends on its own;
    errors are raised from the pull that hit them and the next pull retries.

    Example:
        >>> with EventSourceClient("https://example.com/stream") as client:
        ...     for event in client:
        ...         print(event.event_type, event.data)
    """

    def __init__(
        self,
        url: str,
        *,
        transport: Transport | None = None,
        config: EventSourceConfig | None = None,
        retry_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self._url = url
        self._config = _resolve_config(config, retry_ms)
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(config=self._config.http_config())
        self._state = ClientState(retry_ms=self._config.retry_ms)
        self._clock = clock
        self._sleep = sleep
        self._response: TransportResponse | None = None
        self._chunks: Iterator[bytes] | None = None
        self._lines = LineBuffer()
        self._pulling = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def last_event_id(self) -> str | None:
        return self._state.last_event_id

    @property
    def last_attempt_time(self) -> float | None:
        return self._state.last_attempt_time

    @property
    def retry_ms(self) -> int:
        """Reconnection interval in milliseconds; the stream can change it."""
        return self._state.retry_ms

    @retry_ms.setter
    def retry_ms(self, value: int) -> None:
        if value < 0:
            raise ValueError("retry_ms must be >= 0")
        self._state.retry_ms = value

    @property
    def connected(self) -> bool:
        return self._response is not None

    def __enter__(self) -> EventSourceClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __iter__(self) -> EventSourceClient:
        return self

    def __next__(self) -> Event:
        return self.next_event()

    def close(self) -> None:
        self._release()
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            self._transport.close()

    def next_event(self) -> Event:
        """
        Pull the next event, connecting or reconnecting as needed.

        Returns:
            The next dispatched Event.

        Raises:
            TransportError, HttpStatusError, MissingContentType,
            InvalidContentType: The connection attempt failed.
            ReadError: The open stream failed while being read.
        """
        if self._pulling:
            raise RuntimeError("next_event() is not reentrant")
        self._pulling = True
        try:
            return self._next_event()
        finally:
            self._pulling = False

    def iter_results(self) -> Iterator[Event | EventSourceError]:
        """Endless iterator of events, with connection errors as items instead of exceptions."""
        while True:
            try:
                yield self.next_event()
            except EventSourceError as exc:
                yield exc

    def _next_event(self) -> Event:
        while True:
            if self._response is None:
                self._connect()
            event = Event()
            while True:
                line = self._read_line()
                if line is None:
                    break
                if self._state.feed(line, event):
                    return event
            # Clean end of stream: a partial event is dropped and we reconnect.
            logger.debug("Event stream %s ended, reconnecting", self._url)
            self._release()
            self._state.last_attempt_time = self._clock()

    def _connect(self) -> None:
        wait = self._state.remaining_wait(self._clock())
        if wait > 0:
            logger.debug("Waiting %.3fs before connecting to %s", wait, self._url)
            self._sleep(wait)
        self._state.last_attempt_time = self._clock()

        headers = self._state.request_headers(self._config.headers)
        logger.debug("Connecting to %s (Last-Event-ID=%r)", self._url, self._state.last_event_id)
        try:
            response = self._transport.open(self._url, headers)
        except OSError as exc:
            logger.warning("Connecting to %s failed: %r", self._url, exc)
            raise TransportError(f"GET {self._url} failed: {exc!r}") from exc
        except TransportError as exc:
            logger.warning("Connecting to %s failed: %s", self._url, exc)
            raise

        try:
            check_response(response)
        except EventSourceError as exc:
            logger.warning("Rejected response from %s: %s", self._url, exc)
            response.close()
            raise

        self._response = response
        self._chunks = iter(response.iter_bytes())

    def _read_line(self) -> bytes | None:
        while True:
            line = self._lines.pop_line()
            if line is not None:
                return line
            assert self._chunks is not None
            try:
                chunk = next(self._chunks, None)
            except (ReadError, OSError) as exc:
                logger.warning("Reading event stream %s failed: %r", self._url, exc)
                self._release()
                if isinstance(exc, ReadError):
                    raise
                raise ReadError(f"error reading event stream: {exc!r}") from exc
            if chunk is None:
                return self._lines.pop_remainder()
            self._lines.feed(chunk)

    def _release(self) -> None:
        response, self._response, self._chunks = self._response, None, None
        self._lines.clear()
        if response is not None:
            response.close()


class AsyncEventSourceClient:
    """
    asyncio counterpart of EventSourceClient.

    Suspends only while waiting out the retry interval, connecting and
    reading the body; parsing a line never yields to the event loop.
    """

    def __init__(
        self,
        url: str,
        *,
        transport: AsyncTransport | None = None,
        config: EventSourceConfig | None = None,
        retry_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._config = _resolve_config(config, retry_ms)
        self._owns_transport = transport is None
        self._transport: AsyncTransport = transport or AsyncHttpxTransport(config=self._config.http_config())
        self._state = ClientState(retry_ms=self._config.retry_ms)
        self._clock = clock
        self._sleep = sleep
        self._response: AsyncTransportResponse | None = None
        self._chunks: AsyncIterator[bytes] | None = None
        self._lines = LineBuffer()
        self._pulling = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def last_event_id(self) -> str | None:
        return self._state.last_event_id

    @property
    def last_attempt_time(self) -> float | None:
        return self._state.last_attempt_time

    @property
    def retry_ms(self) -> int:
        return self._state.retry_ms

    @retry_ms.setter
    def retry_ms(self, value: int) -> None:
        if value < 0:
            raise ValueError("retry_ms must be >= 0")
        self._state.retry_ms = value

    @property
    def connected(self) -> bool:
        return self._response is not None

    async def __aenter__(self) -> AsyncEventSourceClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def __aiter__(self) -> AsyncEventSourceClient:
        return self

    async def __anext__(self) -> Event:
        return await self.anext_event()

    async def aclose(self) -> None:
        await self._release()
        if self._owns_transport and isinstance(self._transport, AsyncHttpxTransport):
            await self._transport.aclose()

    async def anext_event(self) -> Event:
        """Async version of EventSourceClient.next_event()."""
        if self._pulling:
            raise RuntimeError("anext_event() is not reentrant")
        self._pulling = True
        try:
            return await self._next_event()
        finally:
            self._pulling = False

    async def aiter_results(self) -> AsyncIterator[Event | EventSourceError]:
        while True:
            try:
                yield await self.anext_event()
            except EventSourceError as exc:
                yield exc

    async def _next_event(self) -> Event:
        while True:
            if self._response is None:
                await self._connect()
            event = Event()
            while True:
                line = await self._read_line()
                if line is None:
                    break
                if self._state.feed(line, event):
                    return event
            logger.debug("Event stream %s ended, reconnecting", self._url)
            await self._release()
            self._state.last_attempt_time = self._clock()

    async def _connect(self) -> None:
        wait = self._state.remaining_wait(self._clock())
        if wait > 0:
            logger.debug("Waiting %.3fs before connecting to %s", wait, self._url)
            await self._sleep(wait)
        self._state.last_attempt_time = self._clock()

        headers = self._state.request_headers(self._config.headers)
        logger.debug("Connecting to %s (Last-Event-ID=%r)", self._url, self._state.last_event_id)
        try:
            response = await self._transport.open(self._url, headers)
        except OSError as exc:
            logger.warning("Connecting to %s failed: %r", self._url, exc)
            raise TransportError(f"GET {self._url} failed: {exc!r}") from exc
        except TransportError as exc:
            logger.warning("Connecting to %s failed: %s", self._url, exc)
            raise

        try:
            check_response(response)
        except EventSourceError as exc:
            logger.warning("Rejected response from %s: %s", self._url, exc)
            await response.aclose()
            raise

        self._response = response
        self._chunks = response.aiter_bytes().__aiter__()

    async def _read_line(self) -> bytes | None:
        while True:
            line = self._lines.pop_line()
            if line is not None:
                return line
            assert self._chunks is not None
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                return self._lines.pop_remainder()
            except (ReadError, OSError) as exc:
                logger.warning("Reading event stream %s failed: %r", self._url, exc)
                await self._release()
                if isinstance(exc, ReadError):
                    raise
                raise ReadError(f"error reading event stream: {exc!r}") from exc
            self._lines.feed(chunk)

    async def _release(self) -> None:
        response, self._response, chunks = self._response, None, self._chunks
        self._chunks = None
        self._lines.clear()
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        if response is not None:
            await response.aclose()
