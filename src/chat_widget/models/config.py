"""Validated configuration consumed by the widget at construction time."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Tuple

from chat_widget.core.constants import (
    API_DEFAULTS,
    DEFAULT_TIMINGS,
    MEGABYTE,
    POSITIONS,
    THEMES,
    WILDCARD_TYPE,
    AnimationTimings,
)
from chat_widget.core.errors import ConfigurationError

_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_TYPE_PATTERN = re.compile(r"^(?:\*/\*|[\w.+-]+/(?:\*|[\w.+-]+))$")


@dataclass(frozen=True, slots=True)
class WidgetConfig:
    """Named, typed and defaulted widget options."""

    title: str = "AI Assistant"
    subtitle: str = "We're here to help!"
    position: str = "bottom-right"
    primary_color: str = "#6366f1"
    icon_size: int = 60
    theme: str = "modern"
    max_file_size: int = 10 * MEGABYTE
    allowed_file_types: Tuple[str, ...] = (WILDCARD_TYPE,)
    max_messages: int = 100
    welcome_message: str = "👋 Hi there! How can I help you today?"
    report_attachment_errors: bool = False
    timings: AnimationTimings = field(default_factory=lambda: DEFAULT_TIMINGS)

    def __post_init__(self) -> None:
        if self.position not in POSITIONS:
            raise ConfigurationError(f"position must be one of {', '.join(POSITIONS)}, got {self.position!r}")
        if self.theme not in THEMES:
            raise ConfigurationError(f"theme must be one of {', '.join(THEMES)}, got {self.theme!r}")
        if not _COLOR.match(self.primary_color):
            raise ConfigurationError(f"primary_color must be a hex colour, got {self.primary_color!r}")
        if self.icon_size <= 0:
            raise ConfigurationError("icon_size must be positive")
        if self.max_file_size <= 0:
            raise ConfigurationError("max_file_size must be positive")
        if self.max_messages < 1:
            raise ConfigurationError("max_messages must be at least 1")
        # Lists from TOML/JSON are accepted and frozen into a tuple.
        allowed = tuple(str(item).strip() for item in self.allowed_file_types)
        if not allowed:
            raise ConfigurationError("allowed_file_types must not be empty")
        invalid = [item for item in allowed if not _TYPE_PATTERN.match(item)]
        if invalid:
            raise ConfigurationError(f"invalid attachment type pattern(s): {', '.join(invalid)}")
        object.__setattr__(self, "allowed_file_types", allowed)
        for name in ("slide_in", "slide_out", "typing", "bot_prompt"):
            if getattr(self.timings, name) < 0:
                raise ConfigurationError(f"timings.{name} must not be negative")


@dataclass(frozen=True, slots=True)
class ApiSettings:
    """Where the chat and catalog endpoints live and how hard to try."""

    base_url: str = API_DEFAULTS.base_url
    chat_path: str = API_DEFAULTS.chat_path
    timeout: float = API_DEFAULTS.timeout
    retry_attempts: int = API_DEFAULTS.retry_attempts
    verify_tls: bool = True

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")


@dataclass(frozen=True, slots=True)
class WidgetSettings:
    widget: WidgetConfig = field(default_factory=WidgetConfig)
    api: ApiSettings = field(default_factory=ApiSettings)
