"""Load widget and API settings from a config file plus environment overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping

try:  # pragma: no cover - Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore[import]

from chat_widget.core.constants import AnimationTimings
from chat_widget.core.errors import ConfigurationError
from chat_widget.models.config import ApiSettings, WidgetConfig, WidgetSettings

CONFIG_PATH_ENV_VAR = "CHAT_WIDGET_CONFIG_PATH"
ENV_PREFIX = "CHAT_WIDGET_"
DEFAULT_CONFIG_NAME = "chat_widget.toml"

_logger = logging.getLogger("chat-widget.settings")

_INT_FIELDS = {"icon_size", "max_file_size", "max_messages", "retry_attempts"}
_FLOAT_FIELDS = {"timeout", "slide_in", "slide_out", "typing", "bot_prompt"}
_BOOL_FIELDS = {"report_attachment_errors", "verify_tls"}
_LIST_FIELDS = {"allowed_file_types"}


def _normalise_key(value: str) -> str:
    return value.strip().lower().replace("-", "_")


def _json_or_raw(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _parse_toml(raw: str) -> dict[str, Any]:
    try:
        return tomllib.loads(raw)
    except Exception as error:  # noqa: BLE001 - normalization layer
        raise ValueError("Invalid TOML payload") from error


def _parse_json(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ValueError("Invalid JSON payload") from error
    if not isinstance(data, dict):
        raise ValueError("JSON configuration must be an object")
    return data


def _parse_simple_kv(raw: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ValueError("Invalid key/value configuration")
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"')
    return data


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a TOML, JSON or ``key = value`` file into a flat mapping.

    ``[widget]``, ``[api]`` and ``[timings]`` tables are flattened; keys are
    lower-cased with dashes turned into underscores.
    """

    raw_text = path.read_text(encoding="utf-8")
    if not raw_text.strip():
        return {}
    for parser in (_parse_toml, _parse_json, _parse_simple_kv):
        try:
            parsed = parser(raw_text)
        except ValueError:
            continue
        break
    else:
        raise ConfigurationError(f"unable to parse configuration file {path}")
    flat: dict[str, Any] = {}
    for key, value in parsed.items():
        if isinstance(value, Mapping):
            for inner_key, inner_value in value.items():
                flat[_normalise_key(inner_key)] = inner_value
        else:
            flat[_normalise_key(key)] = value
    return flat


def _resolve_config_path(path: Path | str | None, env: Mapping[str, str]) -> Path | None:
    if path is not None:
        return Path(path).expanduser()
    env_path = env.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    default_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if default_path.exists():
        return default_path
    return None


def _environment_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV_VAR:
            continue
        overrides[_normalise_key(key[len(ENV_PREFIX):])] = value
    return overrides


def _coerce(key: str, value: Any) -> Any:
    try:
        if key in _INT_FIELDS:
            return int(value)
        if key in _FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f"{key} must be numeric, got {value!r}") from error
    if key in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            parsed = _json_or_raw(value)
            if isinstance(parsed, list):
                return tuple(str(item) for item in parsed)
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return tuple(value)
    return value


def _pick(cls: type, values: Mapping[str, Any]) -> Dict[str, Any]:
    names = {item.name for item in fields(cls)}
    return {key: _coerce(key, value) for key, value in values.items() if key in names}


def build_settings(values: Mapping[str, Any]) -> WidgetSettings:
    timings = AnimationTimings(**_pick(AnimationTimings, values))
    widget_values = _pick(WidgetConfig, values)
    widget_values.pop("timings", None)
    widget = WidgetConfig(timings=timings, **widget_values)
    api = ApiSettings(**_pick(ApiSettings, values))
    return WidgetSettings(widget=widget, api=api)


def load_settings(
    path: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> WidgetSettings:
    """Resolve settings from file, then ``CHAT_WIDGET_*`` variables, then defaults."""

    environment = os.environ if env is None else env
    values: dict[str, Any] = {}
    config_path = _resolve_config_path(path, environment)
    if config_path is not None:
        if config_path.exists():
            values.update(read_config_file(config_path))
        else:
            _logger.debug("settings.missing path=%s", config_path)
    values.update(_environment_overrides(environment))
    return build_settings(values)
