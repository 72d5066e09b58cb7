from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class EventSourceError(RuntimeError):
    """Base error of the library. The client stays usable after any of them."""


class TransportError(EventSourceError):
    """The underlying transport could not establish or complete the request."""


class ReadError(EventSourceError):
    """I/O failure while reading the body of an already open stream."""


class MissingContentType(EventSourceError):
    """The response carries no Content-Type header."""

    def __init__(self, message: str = "response has no Content-Type header") -> None:
        super().__init__(message)


@dataclass(slots=True)
class HttpStatusError(EventSourceError):
    """
    The server answered with a status code outside the 2xx range.

    The response body is never read: on an event-stream endpoint it may not
    terminate, so only the status line is kept.
    """
    status_code: int
    reason_phrase: str | None = None

    def __str__(self) -> str:
        parts = [f"HttpStatusError(status_code={self.status_code}"]
        if self.reason_phrase:
            parts.append(f", reason={self.reason_phrase!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Error as a dict, for structured logging."""
        return {
            "status_code": self.status_code,
            "reason_phrase": self.reason_phrase,
        }

    @property
    def is_client_error(self) -> bool:
        """True for 4xx statuses."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx statuses."""
        return 500 <= self.status_code < 600


@dataclass(slots=True)
class InvalidContentType(EventSourceError):
    """The Content-Type header is present but is not ``text/event-stream``."""
    content_type: str

    def __str__(self) -> str:
        return f"unexpected Content-Type: {self.content_type!r}"
