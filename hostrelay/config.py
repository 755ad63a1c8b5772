"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag (or HOSTRELAY_CONFIG_PATH)
2. ./hostrelay.yaml (working directory)
3. ~/.hostrelay/config.yaml (user home)

Environment variables override YAML: HOSTRELAY_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
Deployment variables PYTHON_ADK_HOST_URL, PYTHON_ADK_API_KEY, DATABASE_URL
and ALLOWED_ORIGINS seed their sections before the prefixed overrides apply.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENV_PREFIX = "HOSTRELAY_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """HTTP/WebSocket listener settings."""

    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "info"
    allowed_origins: list[str] = []

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value: Any) -> Any:
        """Accept a comma-separated string as well as a YAML list."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


class HostConfig(BaseModel):
    """Outbound connection to the agent-orchestration host."""

    base_url: str = "http://localhost:8000"
    api_key: str = ""
    timeout_seconds: float = Field(default=30.0, gt=0)


class StoreConfig(BaseModel):
    """Database settings. database_url None means the default SQLite file."""

    database_url: str | None = None
    echo: bool = False


class FanoutConfig(BaseModel):
    """Live-update push channel settings."""

    max_pending_messages: int = Field(default=1000, ge=1)
    ping_interval_seconds: float = Field(default=15.0, gt=0)


class RelayConfig(BaseModel):
    """Top-level configuration for the relay service."""

    server: ServerConfig = ServerConfig()
    host: HostConfig = HostConfig()
    store: StoreConfig = StoreConfig()
    fanout: FanoutConfig = FanoutConfig()


def _find_config_file() -> Path | None:
    candidates = [
        Path.cwd() / "hostrelay.yaml",
        Path.cwd() / "hostrelay.yml",
        Path.home() / ".hostrelay" / "config.yaml",
        Path.home() / ".hostrelay" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_legacy_env(data: dict[str, Any]) -> dict[str, Any]:
    """Seed config from the unprefixed deployment variables."""
    legacy = {
        "PYTHON_ADK_HOST_URL": ("host", "base_url"),
        "PYTHON_ADK_API_KEY": ("host", "api_key"),
        "DATABASE_URL": ("store", "database_url"),
        "ALLOWED_ORIGINS": ("server", "allowed_origins"),
    }
    for env_name, (section, field) in legacy.items():
        value = os.environ.get(env_name)
        if value is None or not value.strip():
            continue
        section_data = data.setdefault(section, {})
        if isinstance(section_data, dict):
            section_data[field] = value.strip()
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply HOSTRELAY_<SECTION>_<KEY> env var overrides to config data.

    Values stay strings; Pydantic coerces them to the field types.
    """
    known_sections = sorted(RelayConfig.model_fields.keys(), key=len, reverse=True)
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        suffix = key[len(_ENV_PREFIX):].lower()
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                field = suffix[len(section_prefix):]
                if field:
                    section_data = data.setdefault(section, {})
                    if isinstance(section_data, dict):
                        section_data[field] = value
                break
    return data


def load_config(config_path: str | None = None) -> RelayConfig:
    """Load relay configuration.

    Args:
        config_path: Explicit path to a YAML config file. If None, checks
            HOSTRELAY_CONFIG_PATH and then the standard locations. No file
            at all means defaults plus environment overrides.

    Returns:
        Validated RelayConfig.

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
    """
    explicit = config_path or os.environ.get("HOSTRELAY_CONFIG_PATH")
    if explicit:
        path: Path | None = Path(explicit).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_legacy_env(data)
    data = _apply_env_overrides(data)
    return RelayConfig(**data)
