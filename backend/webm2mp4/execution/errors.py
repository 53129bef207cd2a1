"""
Execution-specific errors.

All errors are caught at the controller boundary.
They indicate the engine could not be loaded or could not convert a file,
but the service keeps running.
"""

from typing import Optional


class ExecutionError(Exception):
    """
    Base exception for engine failures.

    All execution errors inherit from this.
    """

    pass


class EngineLoadError(ExecutionError):
    """
    Engine bootstrap failed.

    Raised when the transcoding runtime cannot be located or instantiated:
    - ffmpeg binary missing
    - ffmpeg binary not executable
    - ffmpeg refuses to report its version
    - working directory cannot be created

    Session-fatal. Never retried automatically.
    """

    def __init__(self, reason: str, resource: Optional[str] = None):
        self.reason = reason
        self.resource = resource
        message = f"Failed to load converter: {reason}"
        if resource:
            message += f" ({resource})"
        super().__init__(message)


class TranscodeError(ExecutionError):
    """
    Engine failed while converting.

    Covers malformed input, unsupported codec paths and crashes alike.
    Callers are not told which one happened.
    """

    def __init__(self, reason: str, exit_code: Optional[int] = None, stderr: Optional[str] = None):
        self.reason = reason
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"Conversion failed: {reason}"
        if exit_code is not None:
            message += f" (exit code: {exit_code})"
        super().__init__(message)
