from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, timezone
from enum import StrEnum


class MessageSeverity(StrEnum):
    unknown = "JOB_MESSAGE_IMPORTANCE_UNKNOWN"
    debug = "JOB_MESSAGE_DEBUG"
    detailed = "JOB_MESSAGE_DETAILED"
    basic = "JOB_MESSAGE_BASIC"
    warning = "JOB_MESSAGE_WARNING"
    error = "JOB_MESSAGE_ERROR"


class ProgressMessage(BaseModel):
    """A single progress message emitted by the remote job."""

    id: Optional[str] = None
    timestamp: datetime = Field(alias="time")
    severity: MessageSeverity = Field(default=MessageSeverity.unknown, alias="messageImportance")
    text: str = Field(default="", alias="messageText")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator("timestamp")
    def ensure_utc(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC so watermarks stay comparable."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("severity", mode="before")
    def coerce_severity(cls, value):
        """Unrecognized importance values degrade to `unknown`."""
        try:
            return MessageSeverity(value)
        except ValueError:
            return MessageSeverity.unknown
