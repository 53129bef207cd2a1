"""
Output-handle errors.
"""


class OutputError(Exception):
    """Base exception for output handle operations."""
    pass


class HandleNotFoundError(OutputError):
    """Raised when a handle is unknown or has been revoked."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Output not found or revoked: {token}")
