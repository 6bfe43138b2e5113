"""Exceptions surfaced to the command line as ``Error: ...`` lines."""

from __future__ import annotations


class OpenRouterError(Exception):
    """Base class for handled, user-facing failures."""


class ConfigurationError(OpenRouterError):
    """Required settings are missing or invalid."""


class PromptError(OpenRouterError):
    """No usable prompt or goal could be read."""


class GatewayError(OpenRouterError):
    """The gateway call did not produce a usable response."""


class GatewayHTTPError(GatewayError):
    """The gateway answered with a non-2xx status."""

    def __init__(self, status: int, body: str, reason: str | None = None) -> None:
        self.status = status
        self.body = body
        self.reason = reason
        super().__init__(f"API responded {status}: {body or reason or 'no response body'}")


class GatewayTransportError(GatewayError):
    """The request never produced a readable HTTP response."""
