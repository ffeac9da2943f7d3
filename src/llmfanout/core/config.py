"""
llmfanout Configuration System.

Two layers:

- ``FanoutConfig``: run settings (config file location, output directory,
  timeouts, logging) loaded from environment variables, a YAML file or
  set programmatically.
- ``AppConfig``: the models and groups available for a run, loaded from
  the YAML models file by ``load_app_config``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from llmfanout.core.catalog import DEFAULT_GROUP_NAME, DEFAULT_GROUP_PROMPT
from llmfanout.core.types import AppConfig
from llmfanout.utils.errors import (
    ConfigError,
    FanoutError,
    FileSystemError,
    PermissionDeniedError,
    file_not_found_error,
)
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUERY_TIMEOUT_MS = 300_000
DEFAULT_THINKING_BUDGET_TOKENS = 16_000
DEFAULT_OUTPUT_DIR = "llmfanout-output"
CONFIG_DIR_NAME = "llmfanout"
CONFIG_FILE_NAME = "models.yaml"

# Written on first use when no models file exists yet
DEFAULT_APP_CONFIG: dict[str, Any] = {
    "models": [
        {
            "provider": "openai",
            "modelId": "gpt-4o",
            "enabled": True,
            "options": {"temperature": 0.7},
        },
        {
            "provider": "anthropic",
            "modelId": "claude-3-7-sonnet-20250219",
            "enabled": True,
            "options": {"temperature": 0.7, "maxTokens": 4000},
        },
        {
            "provider": "openrouter",
            "modelId": "google/gemini-pro",
            "enabled": False,
        },
    ],
    "groups": {
        DEFAULT_GROUP_NAME: {
            "systemPrompt": {"text": DEFAULT_GROUP_PROMPT},
            "models": [],
        },
    },
}


def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/llmfanout/models.yaml`` (``~/.config`` when unset)."""
    base = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    json_format: bool = False
    log_file: str | None = None


@dataclass
class FanoutConfig:
    """
    Run settings for llmfanout.

    Can be created from:
    - Environment variables (load with from_env())
    - YAML file (load with from_file())
    - Programmatically (direct instantiation)

    Example:
        config = FanoutConfig.from_env()
        config = FanoutConfig(default_timeout_ms=60_000)
    """

    config_path: str | None = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    default_timeout_ms: int = DEFAULT_QUERY_TIMEOUT_MS
    thinking_budget_tokens: int = DEFAULT_THINKING_BUDGET_TOKENS
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> FanoutConfig:
        """
        Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file

        Returns:
            FanoutConfig instance
        """
        if dotenv_path:
            load_dotenv(dotenv_path)
        else:
            load_dotenv()

        def get_env_int(key: str, default: int) -> int:
            val = os.getenv(key)
            if not val:
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigError(
                    f"Invalid integer for {key}: {val!r}",
                    cause=e,
                    suggestions=[f"Set {key} to a whole number"],
                ) from e

        def get_env_bool(key: str, default: bool) -> bool:
            val = os.getenv(key, "").lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        return cls(
            config_path=os.getenv("LLMFANOUT_CONFIG"),
            output_dir=os.getenv("LLMFANOUT_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            default_timeout_ms=get_env_int("LLMFANOUT_TIMEOUT_MS", DEFAULT_QUERY_TIMEOUT_MS),
            thinking_budget_tokens=get_env_int(
                "LLMFANOUT_THINKING_BUDGET", DEFAULT_THINKING_BUDGET_TOKENS
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "WARNING"),
                json_format=get_env_bool("LOG_JSON", False),
                log_file=os.getenv("LOG_FILE"),
            ),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> FanoutConfig:
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            FanoutConfig instance
        """
        return cls._from_dict(_read_yaml(Path(path)) or {})

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> FanoutConfig:
        """Create config from dictionary."""
        logging_data = data.get("logging") or {}
        try:
            return cls(
                config_path=data.get("config_path"),
                output_dir=data.get("output_dir", DEFAULT_OUTPUT_DIR),
                default_timeout_ms=int(data.get("default_timeout_ms", DEFAULT_QUERY_TIMEOUT_MS)),
                thinking_budget_tokens=int(
                    data.get("thinking_budget_tokens", DEFAULT_THINKING_BUDGET_TOKENS)
                ),
                logging=LoggingConfig(**logging_data),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid settings: {e}", cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "config_path": self.config_path or str(default_config_path()),
            "output_dir": self.output_dir,
            "default_timeout_ms": self.default_timeout_ms,
            "thinking_budget_tokens": self.thinking_budget_tokens,
            "logging": {
                "level": self.logging.level,
                "json_format": self.logging.json_format,
                "log_file": self.logging.log_file,
            },
        }


def _read_yaml(path: Path) -> Any:
    """Parse a YAML file, classifying filesystem and syntax failures."""
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise file_not_found_error(str(path), cause=e) from e
    except PermissionError as e:
        raise PermissionDeniedError(
            f"Permission denied reading configuration file: {path}",
            cause=e,
            suggestions=[f"Check the read permissions of {path}"],
        ) from e
    except IsADirectoryError as e:
        raise FileSystemError(
            f"Expected a file but found a directory: {path}",
            file_path=str(path),
            cause=e,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in configuration file {path}: {e}",
            cause=e,
            suggestions=[
                "Check the file for indentation or quoting mistakes",
                "Validate the file with a YAML linter",
            ],
        ) from e


def write_default_app_config(path: Path) -> None:
    """Create ``path`` with the starter models and groups."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_APP_CONFIG, f, sort_keys=False)
    except PermissionError as e:
        raise PermissionDeniedError(
            f"Permission denied creating configuration file: {path}",
            cause=e,
            suggestions=[f"Create {path} manually or pass --config"],
        ) from e
    except OSError as e:
        raise FileSystemError(
            f"Failed to create configuration file: {path}",
            file_path=str(path),
            cause=e,
        ) from e


def load_app_config(path: str | Path | None = None) -> AppConfig:
    """
    Load the models/groups file.

    An explicit ``path`` must exist. Without one, the default location is
    used and created with starter content when missing.

    Raises:
        FileSystemError: explicit file missing
        ConfigError: malformed content
    """
    if path is None:
        resolved = default_config_path()
        if not resolved.exists():
            logger.info("Configuration file not found, creating default", path=str(resolved))
            write_default_app_config(resolved)
    else:
        resolved = Path(path)

    data = _read_yaml(resolved)
    if data is not None and not isinstance(data, dict):
        raise ConfigError(
            f"Configuration file {resolved} must contain a mapping with 'models' and 'groups'",
            suggestions=["Start the file with a top-level 'models:' list"],
        )
    try:
        config = AppConfig.from_dict(data)
    except FanoutError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(
            f"Invalid configuration in {resolved}: {e}",
            cause=e,
            suggestions=[
                "Each model needs 'provider' and 'modelId' fields",
                "Each group needs a 'systemPrompt'",
            ],
        ) from e

    logger.debug(
        "Configuration loaded",
        path=str(resolved),
        models=len(config.models),
        groups=len(config.groups),
    )
    return config


# Global config instance (can be overridden)
_global_config: FanoutConfig | None = None


def get_config() -> FanoutConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = FanoutConfig.from_env()
    return _global_config


def set_config(config: FanoutConfig | None) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _global_config
    _global_config = config
