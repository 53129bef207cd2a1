"""
Output handles: revocable references to converted files.
"""

from .errors import OutputError, HandleNotFoundError
from .handles import OutputHandle, OutputHandleRegistry

__all__ = [
    "OutputError",
    "HandleNotFoundError",
    "OutputHandle",
    "OutputHandleRegistry",
]
