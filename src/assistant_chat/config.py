"""Configuration loading and validation for the assistant chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "assistant-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

TOKEN_ENV_VAR = "ASSISTANT_CHAT_TOKEN"
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _required_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "Assistant Chat"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _required_string(value)


class ApiConfig(BaseModel):
    """Remote conversation API endpoint and credentials."""

    base_url: str = "http://localhost:5000"
    token: str = ""
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        return _required_string(value).rstrip("/")

    @field_validator("token", mode="before")
    @classmethod
    def _normalize_token(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("token must be a string.")
        return value.strip()


class ConversationsConfig(BaseModel):
    """Conversation defaults."""

    default_title: str = "New Conversation"
    title_max_words: int = Field(default=5, ge=1, le=50)

    @field_validator("default_title", mode="before")
    @classmethod
    def _validate_default_title(cls, value: Any) -> str:
        return _required_string(value)


class KeybindsConfig(BaseModel):
    """Keyboard action mapping."""

    new_conversation: str = "ctrl+n"
    delete_conversation: str = "ctrl+d"
    refresh_conversations: str = "ctrl+r"
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


class SecurityConfig(BaseModel):
    """Transport policy for the API endpoint."""

    allow_insecure_http: bool = False
    insecure_http_hosts: list[str] = ["localhost", "127.0.0.1", "::1"]

    @field_validator("insecure_http_hosts", mode="before")
    @classmethod
    def _validate_hosts(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            raise ValueError("insecure_http_hosts must be a list.")
        return [
            item.strip().lower()
            for item in value
            if isinstance(item, str) and item.strip()
        ]


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/assistant-chat/app.log"

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
        return _required_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    api: ApiConfig = ApiConfig()
    conversations: ConversationsConfig = ConversationsConfig()
    keybinds: KeybindsConfig = KeybindsConfig()
    security: SecurityConfig = SecurityConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _validate_transport_policy(self) -> Config:
        parsed = urlparse(self.api.base_url)
        scheme = parsed.scheme.lower()
        hostname = (parsed.hostname or "").strip().lower()

        if scheme not in {"http", "https"}:
            raise ValueError("api.base_url must use http or https scheme.")
        if not hostname:
            raise ValueError("api.base_url must include a hostname.")
        if (
            scheme == "http"
            and not self.security.allow_insecure_http
            and hostname not in set(self.security.insecure_http_hosts)
        ):
            raise ValueError(
                "api.base_url uses plain http for a host outside security.insecure_http_hosts."
            )
        return self


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


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


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        return Config.model_validate(raw).model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return deepcopy(DEFAULT_CONFIG)
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
        except (tomllib.TOMLDecodeError, OSError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    return _validate_config(_deep_merge(DEFAULT_CONFIG, raw_data))


def resolve_token(config: dict[str, dict[str, Any]]) -> str:
    """Return the session token, preferring the environment over the file."""
    from_env = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if from_env:
        return from_env
    return str(config.get("api", {}).get("token", "")).strip()
