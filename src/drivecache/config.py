from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class MirrorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    local_root: str
    remote_folder: str
    max_total_bytes: int = Field(ge=0)

    @field_validator("local_root", "remote_folder")
    @classmethod
    def validate_non_empty(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("mirror.local_root and mirror.remote_folder must not be empty")
        return normalized


class MetadataConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: str = "data/storage/drivecache.db"


class RemoteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Literal["gdrive", "memory"] = "gdrive"
    access_token_env: str = "GDRIVE_ACCESS_TOKEN"
    timeout_seconds: float = Field(default=30.0, gt=0.0)

    @field_validator("access_token_env")
    @classmethod
    def validate_access_token_env(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("remote.access_token_env must not be empty")
        return normalized


class SweeperConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    batch_size: int = Field(default=10, ge=1)
    idle_interval_seconds: float = Field(default=60.0, gt=0.0)
    drain_interval_seconds: float = Field(default=1.0, gt=0.0)

    @model_validator(mode="after")
    def validate_intervals(self) -> SweeperConfig:
        if self.drain_interval_seconds > self.idle_interval_seconds:
            raise ValueError(
                "sweeper.drain_interval_seconds must be less than or equal to idle_interval_seconds"
            )
        return self


class BulkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_workers: int = Field(default=10, ge=1)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mirror: MirrorConfig
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)
    bulk: BulkConfig = Field(default_factory=BulkConfig)


def load_config(path: str | Path) -> AppConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = _parse_yaml(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed


def _parse_yaml(raw: str) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-untyped]
    except ModuleNotFoundError as exc:
        raise ValueError(
            "YAML parsing requires PyYAML. Use JSON-compatible YAML or install pyyaml."
        ) from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
