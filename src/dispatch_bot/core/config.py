"""Configuration management for dispatch-bot.

This module provides configuration models and loading functionality using Pydantic
for validation and type safety.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DOTENV_LOADED = False


def _load_env_once() -> None:
    """Load environment variables from a .env file exactly once."""

    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv()
        _DOTENV_LOADED = True


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in configuration data."""

    if isinstance(data, str):
        return os.path.expandvars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    log_file: str | None = Field(default=None, description="Log file path")
    max_bytes: int = Field(default=10485760, description="Max log file size (10MB)")
    backup_count: int = Field(default=5, description="Number of backup files")

    @field_validator("level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if level not in valid_levels:
            raise ValueError(f"Unsupported log level: {level}")
        return level


class HTTPClientConfig(BaseModel):
    """Default options applied to HTTP clients handed out by the robot."""

    timeout: float = Field(default=10.0, ge=0.0, description="Default HTTP timeout")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every scoped request"
    )


class BrainConfig(BaseModel):
    """Configuration for the in-memory brain."""

    auto_save: bool = Field(default=True, description="Emit periodic save events")
    save_interval: float = Field(
        default=5.0, gt=0.0, description="Seconds between automatic save events"
    )


class RobotConfig(BaseSettings):
    """Main configuration for a dispatch robot."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_BOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    name: str = Field(default="dispatchbot", description="The robot's name in chat")
    alias: str | None = Field(
        default=None, description="Alternative name the robot responds to"
    )
    adapter: str = Field(default="shell", description="Adapter used to talk to the chat")
    require: list[str] = Field(
        default_factory=list,
        description="Dotted module names of scripts to load, in order",
    )
    http: HTTPClientConfig = Field(
        default_factory=HTTPClientConfig, description="Default HTTP client settings"
    )
    brain: BrainConfig = Field(default_factory=BrainConfig, description="Brain settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        name = (value or "").strip()
        if not name:
            raise ValueError("Robot name must not be empty")
        return name

    @field_validator("alias", mode="before")
    @classmethod
    def empty_alias_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_yaml(cls, path: str | Path) -> RobotConfig:
        """Load configuration from a YAML file."""

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in config file: {exc}") from exc

        if not config_data:
            config_data = {}

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)

    @classmethod
    def from_json(cls, path: str | Path) -> RobotConfig:
        """Load configuration from a JSON file."""

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in config file: {exc}") from exc

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)

    @classmethod
    def from_file(cls, path: str | Path) -> RobotConfig:
        """Load configuration choosing the parser from the file extension."""

        if Path(path).suffix.lower() == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)

    def to_yaml(self, path: str | Path) -> None:
        """Write the configuration to a YAML file."""

        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(self.to_dict(), handle, sort_keys=False, allow_unicode=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""

        return self.model_dump()
