"""Structured logging for the widget runtime."""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(slots=True)
class _LogContext:
    widget_id: str
    environment: str

    @classmethod
    def default_from_environment(cls) -> "_LogContext":
        widget_id = os.getenv("CHAT_WIDGET_ID", "chat-widget")
        environment = os.getenv("CHAT_WIDGET_ENVIRONMENT", "local").lower()
        return cls(widget_id, environment)


@dataclass
class LogEvent:
    """Structured payload emitted by the widget."""

    event: str
    severity: str = "info"
    component: str = "chat-widget"
    message: str | None = None
    fields: Dict[str, Any] | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
            "event": self.event,
            "severity": self.severity,
            "component": self.component,
        }
        if self.message:
            payload["message"] = self.message
        if self.fields:
            payload.update(self.fields)
        return payload


class StructuredLogger:
    """Event-name plus key/value logger on top of :mod:`logging`.

    Each instance speaks for one widget component (``session``, ``flows``,
    ``transport`` ...); :meth:`child` hands out component loggers that share
    the widget id and environment, so one ``configure_context`` call tags
    every line a session emits.

    Output goes to stdout in a human readable form by default; set
    ``CHAT_WIDGET_LOG_FORMAT`` to ``json`` or ``both`` for machine readable
    lines, or ``CHAT_WIDGET_DISABLE_CONSOLE_LOGS=1`` to silence it.
    """

    def __init__(
        self,
        name: str = "chat-widget",
        *,
        component: str | None = None,
        context: _LogContext | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        if not self._logger.hasHandlers():
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)
        self._logger.setLevel(logging.DEBUG if os.getenv("CHAT_WIDGET_DEBUG") == "1" else logging.INFO)
        self._console_enabled = os.getenv("CHAT_WIDGET_DISABLE_CONSOLE_LOGS", "0") != "1"
        self._console_format = os.getenv("CHAT_WIDGET_LOG_FORMAT", "human").lower()
        self._component = component or name.rsplit(".", 1)[-1]
        self._context = context or _LogContext.default_from_environment()

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def component(self) -> str:
        return self._component

    def child(self, component: str) -> "StructuredLogger":
        return StructuredLogger(f"{self.name}.{component}", component=component, context=self._context)

    def log(self, event: str, *, severity: str = "info", message: str | None = None, **fields: Any) -> None:
        payload = LogEvent(event=event, severity=severity, component=self._component, message=message, fields=fields)
        self._emit(payload)

    def debug(self, event: str, **fields: Any) -> None:
        self.log(event, severity="debug", **fields)

    def info(self, event: str, **fields: Any) -> None:
        self.log(event, severity="info", **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self.log(event, severity="warning", **fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log(event, severity="error", **fields)

    def configure_context(self, *, widget_id: str | None = None, environment: str | None = None) -> None:
        if widget_id is not None:
            self._context.widget_id = widget_id
        if environment is not None:
            self._context.environment = environment.lower()

    # ------------------------------------------------------------------ internals
    def _emit(self, event: LogEvent) -> None:
        record = event.to_dict()
        record.setdefault("widget_id", self._context.widget_id)
        record.setdefault("environment", self._context.environment)
        if self._console_enabled:
            self._emit_console(record)

    def _emit_console(self, record: Dict[str, Any]) -> None:
        fmt = self._console_format
        level = self._severity_to_level(record.get("severity", "info"))
        if not self._logger.isEnabledFor(level):
            return
        if fmt in {"json", "both"}:
            self._logger.log(level, json.dumps(record, default=str))
        if fmt in {"human", "both"}:
            self._logger.log(level, self._format_human(record))

    @staticmethod
    def _severity_to_level(severity: str) -> int:
        mapping = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        return mapping.get(severity.lower(), logging.INFO)

    def _format_human(self, record: Dict[str, Any]) -> str:
        data = dict(record)
        timestamp = data.pop("timestamp", "-")
        event = data.pop("event", "unknown")
        severity = data.pop("severity", "info").upper()
        component = data.pop("component", "")
        message = data.pop("message", None)
        fields = " ".join(
            f"{key}={self._format_field_value(value)}" for key, value in sorted(data.items())
        )
        parts = [f"[{timestamp}]", severity, event]
        if component:
            parts.append(f"({component})")
        if message:
            parts.append(f"- {message}")
        if fields:
            parts.append(f"- {fields}")
        return " ".join(part for part in parts if part)

    @staticmethod
    def _format_field_value(value: Any) -> str:
        if isinstance(value, bool):
            return str(value).lower()
        if value is None:
            return "null"
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        return str(value)
