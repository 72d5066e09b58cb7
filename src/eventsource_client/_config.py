"""
This module holds the client configuration and its loading from environment variables.
Explicit values always take precedence over the environment.
"""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveFloat

from eventsource_client._transport import HttpConfig

DEFAULT_RETRY_MS = 5000

ENV_RETRY_MS = "EVENTSOURCE_RETRY_MS"
ENV_CONNECT_TIMEOUT_S = "EVENTSOURCE_CONNECT_TIMEOUT_S"
ENV_READ_TIMEOUT_S = "EVENTSOURCE_READ_TIMEOUT_S"


class EventSourceConfig(BaseModel):
    """
    Settings for an event-source client.
    ``retry_ms`` is only the initial reconnection interval; the stream may change it.
    """
    model_config = ConfigDict(extra="forbid")

    retry_ms: NonNegativeInt = DEFAULT_RETRY_MS
    connect_timeout_s: PositiveFloat = 10.0
    read_timeout_s: Optional[PositiveFloat] = None
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> EventSourceConfig:
        """
        Build a configuration from EVENTSOURCE_* environment variables.

        Args:
            **overrides: Field values that win over the environment.

        Returns:
            A validated EventSourceConfig.

        Raises:
            pydantic.ValidationError: If a value (from the environment or the
                overrides) is not valid for its field.
        """
        values: dict[str, Any] = {}
        for name, env in (
            ("retry_ms", ENV_RETRY_MS),
            ("connect_timeout_s", ENV_CONNECT_TIMEOUT_S),
            ("read_timeout_s", ENV_READ_TIMEOUT_S),
        ):
            raw = os.getenv(env)
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    def http_config(self) -> HttpConfig:
        return HttpConfig(
            connect_timeout_s=self.connect_timeout_s,
            read_timeout_s=self.read_timeout_s,
        )
