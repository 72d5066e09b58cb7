"""
Line-oriented parser for the Server-Sent Events (SSE) wire format.
The parser is a restartable state machine: it consumes one line at a time and
accumulates fields into an Event until a blank line dispatches it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(slots=True)
class Event:
    """
    A single Server-Sent Event.

    While a stream is being parsed the same instance acts as the accumulator
    for the fields seen so far. ``data`` holds every ``data`` line, each one
    followed by a newline.
    """

    id: str | None = None
    event_type: str | None = None
    data: str = ""

    def is_empty(self) -> bool:
        """An event is empty if it has no id, no event type and no data."""
        return self.id is None and self.event_type is None and not self.data

    def clear(self) -> None:
        self.id = None
        self.event_type = None
        self.data = ""

    def __str__(self) -> str:
        out: list[str] = []
        if self.id is not None:
            out.append(f"id: {self.id}\n")
        if self.event_type is not None:
            out.append(f"event: {self.event_type}\n")
        if self.data:
            # The parser terminates every data line with "\n"; drop that last
            # terminator so it does not turn into an extra empty line.
            body = self.data[:-1] if self.data.endswith("\n") else self.data
            for line in body.split("\n"):
                out.append(f"data: {line}\n")
        return "".join(out)

    def to_wire(self) -> str:
        """
        Render the event as a complete wire record, blank line included.

        Returns:
            Text that parse_event_line turns back into an equal Event.
        """
        return f"{self}\n"


@dataclass(frozen=True, slots=True)
class Continue:
    """The line was consumed; the event is not complete yet."""


@dataclass(frozen=True, slots=True)
class Dispatch:
    """The event is complete. Use a new (or cleared) Event for the next line."""


@dataclass(frozen=True, slots=True)
class SetRetry:
    """The stream asked for a new reconnection interval."""

    retry_ms: int

    @property
    def seconds(self) -> float:
        return self.retry_ms / 1000


ParseResult = Union[Continue, Dispatch, SetRetry]

CONTINUE = Continue()
DISPATCH = Dispatch()


# Largest interval accepted from the stream (unsigned 64-bit milliseconds).
_MAX_RETRY_MS = 2**64 - 1


def _parse_retry(value: str) -> int | None:
    if not value or len(value) > 20 or not (value.isascii() and value.isdigit()):
        return None
    retry_ms = int(value)
    return retry_ms if retry_ms <= _MAX_RETRY_MS else None


def parse_event_line(line: str, event: Event) -> ParseResult:
    """
    Parse a single line of an event stream into ``event``.

    Call it once per line until it returns DISPATCH, then hand the finished
    event on and start again with an empty one. The ``id`` of finished events
    is what a client has to send back as ``Last-Event-ID``.

    Args:
        line: One line of the stream; trailing CR/LF characters are ignored.
        event: The accumulator, mutated in place.

    Returns:
        CONTINUE, DISPATCH or SetRetry. Malformed input never raises: unknown
        fields, comments and unparsable retry values are ignored.

    Example:
        >>> event = Event()
        >>> parse_event_line("id: 42", event)
        Continue()
        >>> parse_event_line("data: foobar", event)
        Continue()
        >>> parse_event_line("", event)
        Dispatch()
        >>> event
        Event(id='42', event_type=None, data='foobar\\n')
    """
    line = line.rstrip("\r\n")
    if not line:
        return DISPATCH

    field, sep, value = line.partition(":")
    if sep and value.startswith(" "):
        value = value[1:]

    if field == "event":
        event.event_type = value
    elif field == "data":
        event.data += value + "\n"
    elif field == "id":
        event.id = value
    elif field == "retry":
        retry_ms = _parse_retry(value)
        if retry_ms is not None:
            return SetRetry(retry_ms)

    return CONTINUE
