"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.
"""


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class ValidationError(JobError):
    """Raised when a candidate file is not acceptable."""

    def __init__(self, filename: str, media_type: str, required_type: str):
        self.filename = filename
        self.media_type = media_type
        self.required_type = required_type
        super().__init__(
            f"Invalid file type for {filename!r}: {media_type or '<none>'} "
            f"(required: {required_type})"
        )


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal state transition."""

    def __init__(self, current_state: str, target_state: str, reason: str = ""):
        self.current_state = current_state
        self.target_state = target_state
        self.reason = reason
        message = f"Invalid job state transition: {current_state} -> {target_state}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
