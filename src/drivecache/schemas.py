from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_utc() -> datetime:
    return datetime.now(tz=UTC)


def normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class DTOBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FileRecord(DTOBase):
    remote_id: str
    relative_path: str
    size_bytes: int = Field(ge=0)
    content_type: str = ""
    last_access: datetime = Field(default_factory=now_utc)

    @field_validator("relative_path")
    @classmethod
    def validate_relative_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("relative_path must not be empty")
        return value

    @field_validator("last_access", mode="after")
    @classmethod
    def validate_last_access(cls, value: datetime) -> datetime:
        return normalize_datetime(value)


class RemoteObject(DTOBase):
    id: str
    name: str
    mime_type: str = ""
    size: int | None = None
    parents: list[str] = Field(default_factory=list)

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, value: object) -> object:
        # Drive reports sizes as decimal strings.
        if isinstance(value, str):
            return int(value) if value.strip() else None
        return value
