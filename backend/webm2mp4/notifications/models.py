"""
Transient notification model.

Notifications are short-lived, user-facing messages. Emitting one never
changes controller state.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationKind(str, Enum):
    """What went wrong."""

    ENGINE_LOAD_FAILED = "engine_load_failed"
    VALIDATION_FAILED = "validation_failed"
    TRANSCODE_FAILED = "transcode_failed"


class NotificationVariant(str, Enum):
    """Display hint for the presentation layer."""

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Notification(BaseModel):
    """Immutable notification record."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: NotificationKind
    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DESTRUCTIVE
    job_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def engine_load_failed(cls, reason: Optional[str] = None) -> "Notification":
        return cls(
            kind=NotificationKind.ENGINE_LOAD_FAILED,
            title="Failed to load converter",
            description=reason or "An unknown error occurred. Please restart the converter.",
        )

    @classmethod
    def validation_failed(cls, media_type: str) -> "Notification":
        return cls(
            kind=NotificationKind.VALIDATION_FAILED,
            title="Invalid File Type",
            description=f"Please upload a .webm file (received {media_type or 'unknown type'}).",
        )

    @classmethod
    def transcode_failed(cls, job_id: Optional[str] = None) -> "Notification":
        return cls(
            kind=NotificationKind.TRANSCODE_FAILED,
            title="Conversion Failed",
            description="An error occurred during conversion.",
            job_id=job_id,
        )
