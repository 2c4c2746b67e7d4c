"""Client config loading from config.json plus env overrides."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from modelserver_client.encoding import FORMAT_JSON_V1, FORMAT_JSON_V2, FORMATS
from modelserver_client.paths import API_V1, API_V2


def _env_path(name: str, fallback: Path) -> Path:
    raw = os.environ.get(name, "").strip()
    return Path(raw).expanduser() if raw else fallback.expanduser()


_USER_HOME = Path.home()
_XDG_CONFIG_HOME = _env_path("XDG_CONFIG_HOME", _USER_HOME / ".config")
DEFAULT_CONFIG_HOME = _XDG_CONFIG_HOME / "modelserver"
DEFAULT_CONFIG_JSON = _env_path("MODELSERVER_CONFIG_JSON", DEFAULT_CONFIG_HOME / "config.json")

SECTIONS = {"server", "subscription", "logging", "output"}
_STRING_FIELDS = {"base_url", "api_version", "default_format", "format", "level", "log_file"}


def _validate_format(value: str) -> str:
    fmt = value.strip().lower()
    if fmt not in FORMATS:
        raise ValueError(f"format must be one of {', '.join(FORMATS)}")
    return fmt


class ServerConfig(BaseModel):
    base_url: str = "http://localhost:8081"
    api_version: Literal["v1", "v2"] = "v2"
    default_format: str | None = None
    request_timeout_seconds: float = 15.0

    @field_validator("api_version", mode="before")
    @classmethod
    def _normalise_api_version(cls, value: Any) -> Any:
        if isinstance(value, str):
            version = value.strip().lower()
            return version if version.startswith("v") else f"v{version}"
        return value

    @field_validator("default_format")
    @classmethod
    def _check_format(cls, value: str | None) -> str | None:
        return None if value is None else _validate_format(value)

    @property
    def api_url(self) -> str:
        root = self.base_url.rstrip("/")
        return f"{root}/{API_V2 if self.api_version == 'v2' else API_V1}"

    @property
    def format(self) -> str:
        if self.default_format:
            return self.default_format
        return FORMAT_JSON_V2 if self.api_version == "v2" else FORMAT_JSON_V1


class SubscriptionConfig(BaseModel):
    format: str | None = None
    timeout: int | None = None
    livevalidation: bool | None = None
    error_when_unsuccessful: bool = False
    keep_alive_seconds: float | None = None

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str | None) -> str | None:
        return None if value is None else _validate_format(value)


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    log_file: Path | None = None


class OutputConfig(BaseModel):
    default_format: Literal["human", "json"] = "human"


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def expanded(self) -> "AppConfig":
        clone = self.model_copy(deep=True)
        if clone.logging.log_file is not None:
            clone.logging.log_file = clone.logging.log_file.expanduser()
        return clone


def _coerce_env_value(value: str) -> Any:
    lower = value.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if "," in value:
        return [part.strip() for part in value.split(",") if part.strip()]
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _read_config_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}

    if not isinstance(loaded, dict):
        return {}
    return {section: value for section, value in loaded.items() if section in SECTIONS and isinstance(value, dict)}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    result = dict(data)
    for key, raw in os.environ.items():
        if not key.startswith("MODELSERVER_") or key == "MODELSERVER_CONFIG_JSON":
            continue
        tokens = key[len("MODELSERVER_") :].lower().split("_")
        section = tokens[0]
        if section not in SECTIONS or len(tokens) == 1:
            continue
        field = "_".join(tokens[1:])
        section_obj = dict(result.get(section, {}))
        # urls and formats like "json-v2" must stay strings
        section_obj[field] = raw.strip() if field in _STRING_FIELDS else _coerce_env_value(raw)
        result[section] = section_obj
    return result


def load_config(path: str | Path | None = None) -> AppConfig:
    raw = _read_config_json(Path(path).expanduser() if path else DEFAULT_CONFIG_JSON)
    merged = _apply_env_overrides(raw)
    return AppConfig.model_validate(merged).expanded()
