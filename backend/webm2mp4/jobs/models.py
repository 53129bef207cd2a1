"""
Job and SourceFile data models.

A Job is the single conversion attempt the controller tracks.
Exactly one Job exists at a time; a new one is created whenever a
file is selected.

All models use Pydantic for validation.
State transitions are validated externally (see state.py).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..execution.formats import format_size
from ..outputs.handles import OutputHandle


class JobStatus(str, Enum):
    """
    Controller status.

    Exactly one is active at any time.
    """

    BOOTSTRAPPING = "bootstrapping"  # Engine is loading
    IDLE = "idle"  # Ready for a file
    SELECTED = "selected"  # Valid file chosen, awaiting confirmation
    CONVERTING = "converting"  # Engine is running
    SUCCEEDED = "succeeded"  # Output handle available
    FAILED = "failed"  # Engine load failure (fatal) or conversion failure (recovers)


class SourceFile(BaseModel):
    """
    User-selected file.

    Immutable. The bytes are held for the engine but never serialized.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    media_type: str  # Declared type, not sniffed
    data: bytes = Field(default=b"", repr=False, exclude=True)

    @computed_field
    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_label(self) -> str:
        return format_size(self.size_bytes)


class Job(BaseModel):
    """
    The conversion attempt currently tracked by the controller.

    Invariants:
    - source_file is set iff status in {SELECTED, CONVERTING, SUCCEEDED, FAILED}
      (FAILED after an engine load failure has no source)
    - output_handle is set iff status == SUCCEEDED
    - progress_percent never decreases within one attempt
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # State
    status: JobStatus = JobStatus.BOOTSTRAPPING
    source_file: Optional[SourceFile] = None

    # Progress (0 - 100), meaningful while CONVERTING
    progress_percent: int = Field(default=0, ge=0, le=100)

    # Output
    output_handle: Optional[OutputHandle] = None

    # Outcome
    failure_reason: Optional[str] = None
    # Set once the engine failed to load; no further transitions are possible
    engine_failed: bool = False

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def suggested_output_name(self) -> Optional[str]:
        if self.output_handle is not None:
            return self.output_handle.filename
        return None
