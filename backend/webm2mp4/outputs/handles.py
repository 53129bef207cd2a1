"""
Revocable output handles.

Converted bytes are never handed around directly. They are registered
here and addressed by an opaque token / URL until revoked.

INVARIANT: revoke() is idempotent. Revoking an unknown or already
revoked handle is a no-op that returns False.
"""

import logging
import secrets
from datetime import datetime
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import HandleNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_URL_PREFIX = "/api/outputs"


class OutputHandle(BaseModel):
    """
    Externally addressable reference to converted bytes.

    Consumers fetch the bytes through ``url`` and may revoke it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    token: str
    url: str
    media_type: str
    filename: str  # Suggested download name
    size_bytes: int
    created_at: datetime = Field(default_factory=datetime.now)


class OutputHandleRegistry:
    """
    In-memory store of live output buffers.

    Owns the bytes. Revoking drops them.
    """

    def __init__(self, url_prefix: str = DEFAULT_URL_PREFIX):
        self.url_prefix = url_prefix.rstrip("/")
        self._entries: Dict[str, Tuple[OutputHandle, bytes]] = {}

    def create(self, data: bytes, media_type: str, filename: str) -> OutputHandle:
        token = secrets.token_urlsafe(16)
        handle = OutputHandle(
            token=token,
            url=f"{self.url_prefix}/{token}",
            media_type=media_type,
            filename=filename,
            size_bytes=len(data),
        )
        self._entries[token] = (handle, data)
        logger.info(f"[Outputs] Created {handle.url} ({handle.size_bytes} bytes)")
        return handle

    def fetch(self, token: str) -> Tuple[OutputHandle, bytes]:
        """
        Resolve a token to its handle and bytes.

        Raises:
            HandleNotFoundError: If the token is unknown or revoked
        """
        entry = self._entries.get(token)
        if entry is None:
            raise HandleNotFoundError(token)
        return entry

    def revoke(self, token: str) -> bool:
        """
        Release a handle.

        Returns:
            True if a live handle was released, False if there was nothing to release
        """
        entry = self._entries.pop(token, None)
        if entry is None:
            return False
        logger.info(f"[Outputs] Revoked {entry[0].url}")
        return True

    def is_live(self, token: str) -> bool:
        return token in self._entries

    @property
    def live_count(self) -> int:
        return len(self._entries)

    def revoke_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.info(f"[Outputs] Revoked {count} handle(s)")
        return count
