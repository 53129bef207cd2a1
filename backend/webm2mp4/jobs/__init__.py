"""
Conversion job: models, state machine and controller.

The controller is the only component with failure-handling logic.
It drives the engine adapter and owns the output handle.
"""

from .errors import (
    JobError,
    ValidationError,
    InvalidStateTransitionError,
)
from .models import (
    JobStatus,
    SourceFile,
    Job,
)
from .state import (
    can_transition,
    validate_transition,
    is_accepting,
)
from .controller import ConversionController, DEFAULT_RECOVERY_DELAY_SECONDS

__all__ = [
    # Errors
    "JobError",
    "ValidationError",
    "InvalidStateTransitionError",
    # Models
    "JobStatus",
    "SourceFile",
    "Job",
    # State validation
    "can_transition",
    "validate_transition",
    "is_accepting",
    # Controller
    "ConversionController",
    "DEFAULT_RECOVERY_DELAY_SECONDS",
]
