from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Placeholder address for events that carry no IP field.
SENTINEL_ADDRESS = "0.0.0.0"


class EventType(str, Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    FILE_UPLOAD = "FILE_UPLOAD"
    FILE_DOWNLOAD = "FILE_DOWNLOAD"
    LOGOUT = "LOGOUT"

    @classmethod
    def from_token(cls, token: str) -> "EventType":
        try:
            return cls(token)
        except ValueError:
            raise ValueError(f"unknown event type: {token!r}") from None


def to_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _not_blank(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{what} cannot be blank")
    return value


class Entry(BaseModel):
    """
    One validated activity record.

    NOTE:
    - timestamp is always UTC (naive input is read as UTC).
    - address is SENTINEL_ADDRESS when the event type has no IP field.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    user: str
    event: EventType
    address: str
    file_name: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @field_validator("user")
    @classmethod
    def _user(cls, v: str) -> str:
        return _not_blank(v, "user")

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        return _not_blank(v, "address")

    @property
    def has_address(self) -> bool:
        return self.address != SENTINEL_ADDRESS


class LoginAggregate(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    success_addresses: list[str] = Field(default_factory=list)
    failure_addresses: list[str] = Field(default_factory=list)
    last_success: datetime | None = None
    last_failure: datetime | None = None

    @field_validator("user")
    @classmethod
    def _user(cls, v: str) -> str:
        return _not_blank(v, "user")

    @field_validator("success_addresses", "failure_addresses")
    @classmethod
    def _sorted(cls, v: list[str]) -> list[str]:
        return sorted(v)


class SuspiciousWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    start: datetime
    end: datetime
    failure_count: int
    timestamps: list[datetime]
    users: list[str]

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        return _not_blank(v, "address")

    @model_validator(mode="after")
    def _check_shape(self) -> "SuspiciousWindow":
        if self.start > self.end:
            raise ValueError("start must not be after end")
        if self.failure_count <= 3:
            raise ValueError("failure_count must be more than 3")
        if len(self.timestamps) != self.failure_count:
            raise ValueError("timestamps must match failure_count")
        if len(self.users) != self.failure_count:
            raise ValueError("users must match failure_count")
        return self


class RankedUploader(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    upload_count: int = Field(ge=0)

    @field_validator("user")
    @classmethod
    def _user(cls, v: str) -> str:
        return _not_blank(v, "user")


class ParseResult(BaseModel):
    entries: list[Entry] = Field(default_factory=list)
    errors: int = 0


class UploadResult(BaseModel):
    message: str
    files_processed: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    processed: int = Field(default=0, ge=0)
    total_stored: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)


class ExportReport(BaseModel):
    exported_at: datetime
    total_entries: int = Field(ge=0)
    login_statistics: dict[str, LoginAggregate] = Field(default_factory=dict)
    top_uploaders: list[RankedUploader] = Field(default_factory=list)
    suspicious_activity: list[SuspiciousWindow] = Field(default_factory=list)
