"""Configuration management for the Taskflow service."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "taskflow.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/taskflow/taskflow.yml").expanduser(),
    Path("/config/taskflow.yml"),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/taskflow/secrets.yml").expanduser(),
    Path("/config/secrets.yml"),
]


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` recursively, preferring ``source`` values."""
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _deep_merge(existing, value)
        else:
            target[key] = value
    return target


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            _deep_merge(merged, _load_yaml(path))
        return merged

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if kind == "json":
        return json.loads(raw)
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "DATABASE_URL": ("database.url", "str"),
        "USER_TIMEZONE": ("user.timezone", "str"),
        "LOG_LEVEL": ("logging.level", "str"),
        "LOG_JSON": ("logging.json_output", "bool"),
        "TASKFLOW_BASE_URL": ("taskflow.base_url", "str"),
        "TASKFLOW_DATE_FORMAT": ("taskflow.date_format", "str"),
        "TASKFLOW_ID_PREFIX_LENGTH": ("taskflow.id_prefix_length", "int"),
        "TASKFLOW_DEFAULT_DONE": ("taskflow.default_done", "bool"),
        "TASKFLOW_EXCLUDED_DOCUMENTS": ("taskflow.excluded_documents", "json"),
        "TASKFLOW_USER_NAMESPACE": ("taskflow.user_namespace", "str"),
        "CELERY_BROKER_URL": ("scheduler.broker_url", "str"),
        "CELERY_RESULT_BACKEND": ("scheduler.result_backend", "str"),
        "CELERY_QUEUE_NAME": ("scheduler.queue", "str"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite:///taskflow.db"
    echo: bool = False


class UserConfig(BaseModel):
    """Local presentation settings."""

    timezone: str = "UTC"

    @model_validator(mode="after")
    def validate_timezone(self) -> "UserConfig":
        """Ensure the configured timezone is valid."""
        try:
            ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone: {self.timezone}") from exc
        return self


class LoggingConfig(BaseModel):
    """Root logger configuration."""

    level: str = "INFO"
    json_output: bool = True
    service: str = "taskflow"

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Ensure the level is a standard logging level name."""
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"logging.level is not a valid level: {value}")
        return normalized


class TaskflowConfig(BaseModel):
    """Directive synchronization and reminder settings."""

    date_format: str = "%Y/%m/%d %H:%M"
    base_url: str = "http://localhost:8080/wiki"
    id_prefix_length: int = 10
    default_done: bool = False
    excluded_documents: list[str] = Field(
        default_factory=lambda: ["Macros.CheckboxedTask.WebHome"]
    )
    user_namespace: str = ""

    @field_validator("date_format")
    @classmethod
    def validate_date_format(cls, value: str) -> str:
        """Ensure the date format contains at least one directive."""
        if "%" not in value:
            raise ValueError("taskflow.date_format must be a strftime pattern.")
        return value

    @field_validator("id_prefix_length")
    @classmethod
    def validate_id_prefix_length(cls, value: int) -> int:
        """Ensure identifiers keep a minimal random component."""
        if value < 3:
            raise ValueError("taskflow.id_prefix_length must be >= 3.")
        return value

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Strip trailing slashes from the base URL."""
        return value.rstrip("/")


class SchedulerConfig(BaseModel):
    """Celery broker and reminder trigger configuration."""

    broker_url: str = "redis://redis:6379/1"
    result_backend: str = "redis://redis:6379/2"
    queue: str = "taskflow"
    reminder_minute: int = 0

    @field_validator("reminder_minute")
    @classmethod
    def validate_reminder_minute(cls, value: int) -> int:
        """Ensure the hourly trigger minute is within the hour."""
        if not 0 <= value <= 59:
            raise ValueError("scheduler.reminder_minute must be between 0 and 59.")
        return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML files."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    taskflow: TaskflowConfig = Field(default_factory=TaskflowConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)


# Global settings instance
settings = Settings()
