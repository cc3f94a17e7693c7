"""Runtime settings: filesystem layout, logging sinks and the policy bundle.

Values are layered, lowest precedence first:

1. class defaults,
2. ``config/default.yaml``,
3. ``config/<environment>.yaml``,
4. ``RECORDMERGE_SETTINGS__*`` variables (``__`` separates nested keys),
5. keyword arguments, which is how CLI ``--set`` overrides arrive.

The environment itself comes from the ``environment`` argument or
``RECORDMERGE_ENV``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .overrides import deep_merge, env_overrides
from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_ENV_PREFIX = "RECORDMERGE_SETTINGS__"

Environment = Literal["development", "testing", "production"]


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"Configuration file '{path}' must contain a mapping at the top level")
    return dict(loaded)


def layered_config(config_dir: Path, environment: str) -> Dict[str, Any]:
    """Merge the YAML files for *environment* with settings variables."""

    merged = deep_merge(_read_yaml(config_dir / "default.yaml"), _read_yaml(config_dir / f"{environment}.yaml"))
    return deep_merge(merged, env_overrides(SETTINGS_ENV_PREFIX))


class PathsConfig(BaseModel):
    """Where records, job checkpoints, audit entries and log files live.

    Relative paths are anchored at the project root.
    """

    data_dir: Path = Field(default=Path("data"))
    state_dir: Path = Field(default=Path("state"))
    audit_dir: Path = Field(default=Path("audit"))
    logs_dir: Path = Field(default=Path("logs"))
    audit_file: str = Field(default="merges.jsonl", description="Audit log file name inside audit_dir.")

    @field_validator("data_dir", "state_dir", "audit_dir", "logs_dir")
    @classmethod
    def _anchor(cls, value: Path) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else PROJECT_ROOT / path

    @property
    def audit_log(self) -> Path:
        return self.audit_dir / self.audit_file

    def ensure_exists(self) -> None:
        for directory in (self.data_dir, self.state_dir, self.audit_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


class LoggingConfig(BaseModel):
    """loguru sink options applied by :func:`recordmerge.utils.logging.configure_logging`."""

    level: str = Field(default="INFO")
    file_name: str = Field(default="recordmerge.log")
    rotation: str = Field(default="10 MB")
    retention: str = Field(default="14 days")
    serialize: bool = Field(default=False, description="Write the file sink as JSON lines.")

    @field_validator("level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class Settings(BaseSettings):
    """Top-level configuration object for the CLI and the batch orchestrator."""

    model_config = SettingsConfigDict(
        env_prefix="RECORDMERGE_",
        validate_assignment=True,
        extra="allow",
    )

    environment: Environment = Field(default="development", description="Active runtime environment")
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    create_dirs: bool = Field(
        default=True,
        description="Create the directories declared in `paths` while validating.",
    )
    policies: Policies = Field(default_factory=Policies)

    @model_validator(mode="before")
    @classmethod
    def _layer_sources(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        config_dir = Path(values.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = values.get("environment") or os.getenv("RECORDMERGE_ENV", "development")
        explicit = {key: value for key, value in values.items() if value is not None}
        combined = deep_merge(layered_config(config_dir, environment), explicit)

        policies = combined.get("policies")
        if not isinstance(policies, Policies):
            combined["policies"] = load_policies(policies or {})
        return combined

    @model_validator(mode="after")
    def _create_directories(self) -> "Settings":
        if self.create_dirs:
            self.paths.ensure_exists()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / self.logging.file_name


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""

    return Settings()


__all__ = [
    "Settings",
    "get_settings",
    "PathsConfig",
    "LoggingConfig",
    "layered_config",
    "PROJECT_ROOT",
    "SETTINGS_ENV_PREFIX",
]
