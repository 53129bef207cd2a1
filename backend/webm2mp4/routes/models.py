"""
Response models for the control API.

Views are built from controller snapshots. Source bytes never leave
the process through these models.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..jobs.models import Job, JobStatus
from ..notifications.models import Notification
from ..outputs.handles import OutputHandle


class SourceFileView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    media_type: str
    size_bytes: int
    size_label: str


class JobView(BaseModel):
    """What the presentation layer needs to draw the current state."""

    model_config = ConfigDict(extra="forbid")

    id: str
    status: JobStatus
    engine_ready: bool
    engine_failed: bool
    progress_percent: int
    source_file: Optional[SourceFileView] = None
    output: Optional[OutputHandle] = None
    failure_reason: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job, engine_ready: bool) -> "JobView":
        source = None
        if job.source_file is not None:
            source = SourceFileView(
                name=job.source_file.name,
                media_type=job.source_file.media_type,
                size_bytes=job.source_file.size_bytes,
                size_label=job.source_file.size_label,
            )
        return cls(
            id=job.id,
            status=job.status,
            engine_ready=engine_ready,
            engine_failed=job.engine_failed,
            progress_percent=job.progress_percent,
            source_file=source,
            output=job.output_handle,
            failure_reason=job.failure_reason,
        )


class SelectionRejected(BaseModel):
    model_config = ConfigDict(extra="forbid")

    accepted: bool = False
    notification: Optional[Notification] = None
    job: JobView


class NotificationListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notifications: List[Notification]


class RevokeResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str
    revoked: bool


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str
    engine_ready: bool
    job_status: JobStatus
