"""Exception hierarchy shared by the widget services and controllers."""

from __future__ import annotations


class ChatWidgetError(Exception):
    """Base class for every error raised by the widget core."""


class ConfigurationError(ChatWidgetError, ValueError):
    """Raised when a widget or API setting fails validation."""


class TransportError(ChatWidgetError):
    """The chat endpoint could not be reached or answered with a failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(TransportError):
    """The chat endpoint answered, but the payload is empty or unusable."""


class CatalogError(ChatWidgetError):
    """A product catalog lookup failed."""
