"""
MediaFlow Configuration — Load and validate mediaflow.yaml at startup.

Usage:
    from mediaflow.engine.config import load_platform_config, get_platform_config
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from mediaflow.access.models import DefaultPolicy, RoleConfig, normalize_role
from mediaflow.engine.errors import ConfigError

CONFIG_FILENAME = "mediaflow.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for mediaflow.yaml
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    url: str = "sqlite:///mediaflow.db"
    echo: bool = False


class RedisConfig(BaseModel):
    enabled: bool = True
    url: str = "redis://localhost:6379/0"
    db: int = 3
    prefix: str = "mediaflow:"


class WorkflowConfig(BaseModel):
    review_count_ttl: int = Field(default=3600, ge=1)
    workflow_folder_name: str = "Workflow"
    needs_review_folder_name: str = "Needs Review"
    approved_folder_name: str = "Approved"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level must be a standard level name, got '{v}'")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError(f"logging.format must be json/text, got '{v}'")
        return v


def _default_roles() -> List[RoleConfig]:
    return [
        RoleConfig(name="editor", default_policy=DefaultPolicy.FULL_ACCESS_BY_DEFAULT, label="Editor"),
        RoleConfig(name="author", label="Author"),
        RoleConfig(name="contributor", label="Contributor"),
    ]


class PlatformConfig(BaseModel):
    """Root model for mediaflow.yaml."""
    name: str = "MediaFlow"
    environment: str = "dev"

    roles: List[RoleConfig] = Field(default_factory=_default_roles)
    superuser_roles: List[str] = Field(default_factory=lambda: ["administrator"])
    database: DatabaseConfig = DatabaseConfig()
    redis: RedisConfig = RedisConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v

    @field_validator("superuser_roles")
    @classmethod
    def validate_superuser_roles(cls, v: List[str]) -> List[str]:
        return [normalize_role(r) for r in v if normalize_role(r)]

    @model_validator(mode="after")
    def validate_roles(self) -> "PlatformConfig":
        names = [r.name for r in self.roles]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate role names in roles: {names}")
        full = [r.name for r in self.roles if r.default_policy is DefaultPolicy.FULL_ACCESS_BY_DEFAULT]
        if len(full) > 1:
            raise ValueError(
                f"At most one role may be full_access_by_default, got {full}"
            )
        return self

    def role_policies(self) -> Dict[str, DefaultPolicy]:
        """Role name → DefaultPolicy mapping used by the access resolver."""
        return {r.name: r.default_policy for r in self.roles}


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_platform_config: Optional[PlatformConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for mediaflow.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_platform_config(config_path: Optional[str] = None) -> PlatformConfig:
    """
    Load and validate mediaflow.yaml.

    Args:
        config_path: Explicit path to mediaflow.yaml. If None, auto-discovers.

    Returns:
        Validated PlatformConfig instance.

    Raises:
        ConfigError if the file exists but does not validate.
    """
    global _platform_config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        # Return defaults if no config file
        _platform_config = PlatformConfig()
        return _platform_config

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping", config_path=str(path))

    # Flatten the top-level "platform" key if present
    platform_data = raw.get("platform", {}) or {}
    config_data = {
        k: v for k, v in raw.items() if k != "platform"
    }
    for key in ("name", "environment"):
        if key in platform_data:
            config_data[key] = platform_data[key]

    try:
        _platform_config = PlatformConfig(**config_data)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}", config_path=str(path)) from e
    return _platform_config


def get_platform_config() -> PlatformConfig:
    """Get the currently loaded platform config, loading if necessary."""
    global _platform_config
    if _platform_config is None:
        _platform_config = load_platform_config()
    return _platform_config


def get_environment() -> str:
    return get_platform_config().environment
