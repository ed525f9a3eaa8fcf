"""Configuration loading and validation for the Shapes chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
import tomllib
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "shapes-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9.-]+$")
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _require_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "Shapes Chat"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _require_string(value)


class ShapesConfig(BaseModel):
    """Remote endpoint, model namespace, and trusted media host."""

    api_base_url: str = "https://api.shapes.inc/v1"
    model_namespace: str = "shapesinc"
    media_host: str = "files.shapes.inc"
    timeout_seconds: float | None = Field(default=None, gt=0, le=3600)

    @field_validator("api_base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        normalized = _require_string(value).rstrip("/")
        parsed = urlparse(normalized)
        if parsed.scheme.lower() != "https":
            raise ValueError("api_base_url must use the https scheme.")
        if not parsed.hostname:
            raise ValueError("api_base_url must include a hostname.")
        return normalized

    @field_validator("model_namespace", mode="before")
    @classmethod
    def _validate_namespace(cls, value: Any) -> str:
        normalized = _require_string(value).strip("/")
        if "/" in normalized:
            raise ValueError("model_namespace must not contain '/'.")
        return normalized

    @field_validator("media_host", mode="before")
    @classmethod
    def _validate_media_host(cls, value: Any) -> str:
        normalized = _require_string(value).lower()
        if not HOSTNAME_PATTERN.match(normalized):
            raise ValueError("media_host must be a bare hostname.")
        return normalized


class UIConfig(BaseModel):
    """Visual settings for Textual rendering."""

    user_message_color: str = "#5865f2"
    agent_message_color: str = "#2f3136"
    show_timestamps: bool = True

    @field_validator("user_message_color", "agent_message_color", mode="before")
    @classmethod
    def _validate_hex_color(cls, value: Any) -> str:
        normalized = _require_string(value)
        if not HEX_COLOR_PATTERN.match(normalized):
            raise ValueError("Color must use #RGB or #RRGGBB format.")
        return normalized


class KeybindsConfig(BaseModel):
    """Keyboard action mapping."""

    send_message: str = "ctrl+enter"
    add_agent: str = "ctrl+n"
    configure_api_key: str = "ctrl+k"
    attach_image: str = "ctrl+o"
    remove_attachment: str = "ctrl+r"
    quit: str = "ctrl+q"

    @field_validator("*", mode="before")
    @classmethod
    def _validate_keybind(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Keybind must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("Keybind must not be empty.")
        return normalized


class AttachmentsConfig(BaseModel):
    """Limits applied to image attachments."""

    max_image_bytes: int = Field(default=10 * 1024 * 1024, ge=1, le=100 * 1024 * 1024)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/shapes-chat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _require_string(value)


class PersistenceConfig(BaseModel):
    """Where the API key is remembered between sessions."""

    api_key_path: str = "~/.local/state/shapes-chat/credentials.json"

    @field_validator("api_key_path", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        return _require_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    shapes: ShapesConfig = ShapesConfig()
    ui: UIConfig = UIConfig()
    keybinds: KeybindsConfig = KeybindsConfig()
    attachments: AttachmentsConfig = AttachmentsConfig()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = _deep_merge(DEFAULT_CONFIG, raw_data)
    return _validate_config(merged)
