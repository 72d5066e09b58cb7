from __future__ import annotations

from eventsource_client.client import AsyncEventSourceClient, ClientState, EventSourceClient, check_response
from eventsource_client._config import DEFAULT_RETRY_MS, EventSourceConfig
from eventsource_client._errors import (
    EventSourceError,
    HttpStatusError,
    InvalidContentType,
    MissingContentType,
    ReadError,
    TransportError,
)
from eventsource_client._event import CONTINUE, DISPATCH, Continue, Dispatch, Event, ParseResult, SetRetry, parse_event_line
from eventsource_client._lines import LineBuffer
from eventsource_client._transport import (
    AsyncHttpxTransport,
    AsyncTransport,
    AsyncTransportResponse,
    HttpConfig,
    HttpxTransport,
    Transport,
    TransportResponse,
)

__all__ = [
    "AsyncEventSourceClient",
    "AsyncHttpxTransport",
    "AsyncTransport",
    "AsyncTransportResponse",
    "CONTINUE",
    "ClientState",
    "Continue",
    "DEFAULT_RETRY_MS",
    "DISPATCH",
    "Dispatch",
    "Event",
    "EventSourceClient",
    "EventSourceConfig",
    "EventSourceError",
    "HttpConfig",
    "HttpStatusError",
    "HttpxTransport",
    "InvalidContentType",
    "LineBuffer",
    "MissingContentType",
    "ParseResult",
    "ReadError",
    "SetRetry",
    "Transport",
    "TransportError",
    "TransportResponse",
    "check_response",
    "parse_event_line",
]

__version__ = "0.1.0"
