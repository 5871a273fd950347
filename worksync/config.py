from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from worksync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


def expand_env_vars(config_str: str) -> str:
    """
    Expand environment variables in the format ${VAR_NAME} within a YAML string.
    Skips expansion in YAML comments (lines starting with #).

    Args:
        config_str: YAML configuration string potentially containing ${VAR_NAME} placeholders

    Returns:
        YAML string with all ${VAR_NAME} placeholders expanded to environment variable values

    Raises:
        KeyError: If a referenced environment variable is not set
    """

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        try:
            return os.environ[var_name]
        except KeyError:
            msg = f"Environment variable '{var_name}' referenced in config.yaml but not set"
            raise KeyError(msg) from None

    lines = []
    for line in config_str.split("\n"):
        if line.lstrip().startswith("#"):
            lines.append(line)
        else:
            lines.append(re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}", replace_var, line))

    return "\n".join(lines)


def load_config_from_yaml(config_path: str | None = None) -> dict[str, Any] | None:
    """
    Load the YAML configuration file and expand environment variables.

    Args:
        config_path: Path to config.yaml. If None, uses the CONFIG_PATH environment
                     variable, falling back to ./config.yaml.

    Returns:
        Parsed configuration mapping, or None when the file does not exist

    Raises:
        ConfigurationError: If the file is unreadable, not valid YAML, not a mapping,
                            or references an unset environment variable
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    config_file = Path(config_path)
    if not config_file.exists():
        return None

    try:
        config_str = config_file.read_text()
    except OSError as e:
        msg = f"Cannot read {config_path}: {e}"
        raise ConfigurationError(msg, context={"path": config_path}) from e

    try:
        expanded_config = expand_env_vars(config_str)
    except KeyError as e:
        msg = f"Error expanding environment variables in config.yaml: {e}"
        raise ConfigurationError(msg, context={"path": config_path}) from None

    try:
        config_dict = yaml.safe_load(expanded_config)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config.yaml: {e}"
        raise ConfigurationError(msg, context={"path": config_path}) from None

    if config_dict is None:
        return {}

    if not isinstance(config_dict, dict):
        msg = "config.yaml must contain a YAML mapping/dictionary at root level"
        raise ConfigurationError(msg, context={"path": config_path})

    return config_dict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WORKSYNC_",
        env_file=None,
        case_sensitive=False,
    )

    # Security
    auth_token: str | None = None  # Required to serve the HTTP API

    # External binaries
    git_binary: str = "git"
    gh_binary: str = "gh"

    # Timeouts (in seconds)
    command_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Default timeout for git commands without an explicit one",
    )
    gh_timeout_seconds: float = Field(
        default=8.0,
        gt=0,
        description="Timeout for gh pull request and CI lookups",
    )

    # Storage
    sessions_file: Path = Field(
        default=Path("data/sessions.json"),
        description="JSON file holding workspaces and cached repository identity",
    )

    # Timeline
    timeline_max_events_per_workspace: int = Field(default=200, gt=0)
    timeline_max_output_chars: int = Field(default=4000, gt=0)

    # Observability
    log_level: str = "INFO"
    log_json: bool = True


def _section(config_dict: dict[str, Any], name: str) -> dict[str, Any]:
    value = config_dict.get(name)
    return value if isinstance(value, dict) else {}


def flatten_config(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Map the nested config.yaml layout onto flat Settings fields."""
    flat_config: dict[str, Any] = {}

    auth = _section(config_dict, "auth")
    if "token" in auth:
        flat_config["auth_token"] = auth["token"]

    git = _section(config_dict, "git")
    if "binary" in git:
        flat_config["git_binary"] = git["binary"]
    if "timeout_seconds" in git:
        flat_config["command_timeout_seconds"] = git["timeout_seconds"]

    github = _section(config_dict, "github")
    if "binary" in github:
        flat_config["gh_binary"] = github["binary"]
    if "timeout_seconds" in github:
        flat_config["gh_timeout_seconds"] = github["timeout_seconds"]

    storage = _section(config_dict, "storage")
    if "sessions_file" in storage:
        flat_config["sessions_file"] = storage["sessions_file"]

    timeline = _section(config_dict, "timeline")
    if "max_events_per_workspace" in timeline:
        flat_config["timeline_max_events_per_workspace"] = timeline["max_events_per_workspace"]
    if "max_output_chars" in timeline:
        flat_config["timeline_max_output_chars"] = timeline["max_output_chars"]

    logging_section = _section(config_dict, "logging")
    if "level" in logging_section:
        flat_config["log_level"] = logging_section["level"]
    if "json" in logging_section:
        flat_config["log_json"] = logging_section["json"]

    return flat_config


def build_settings(config_path: str | None = None) -> Settings:
    """Build Settings from config.yaml (when present), environment and defaults."""
    config_dict = load_config_from_yaml(config_path)
    flat_config = flatten_config(config_dict) if config_dict else {}

    try:
        return Settings(**flat_config)
    except ValidationError as e:
        msg = f"Configuration validation error: {e}"
        raise ConfigurationError(msg, context={"errors": e.error_count()}) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, built on first use."""
    return build_settings()


def reload_settings() -> Settings:
    """Discard cached settings and build them again from disk."""
    get_settings.cache_clear()
    settings = get_settings()
    logger.info("Settings reloaded", extra={"log_level": settings.log_level})
    return settings
