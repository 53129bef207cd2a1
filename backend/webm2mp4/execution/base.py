"""
Transcoding engine abstraction layer.

Formal capability contract consumed by the engine adapter.

Design rules:
- One engine instance per process
- One execution at a time
- Scratch files are addressed by name inside the engine's own workspace
- Progress is pushed to subscribers as fractions in [0, 1]
- Subscriptions are explicit and cancellable
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class ProgressSubscription:
    """
    Handle for one progress listener.

    Cancelling is idempotent. A cancelled subscription never
    receives another update.
    """

    def __init__(self, channel: "ProgressChannel", callback: ProgressCallback):
        self._channel = channel
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._channel._remove(self)

    def _deliver(self, fraction: float) -> None:
        if self._active:
            self._callback(fraction)


class ProgressChannel:
    """Fan-out of progress fractions to active subscriptions."""

    def __init__(self):
        self._subscriptions: List[ProgressSubscription] = []

    def subscribe(self, callback: ProgressCallback) -> ProgressSubscription:
        subscription = ProgressSubscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, fraction: float) -> None:
        # Copy: a listener may cancel itself while being notified
        for subscription in list(self._subscriptions):
            try:
                subscription._deliver(fraction)
            except Exception as e:
                # A broken listener must not abort the running conversion
                logger.warning(f"[Engine] Progress listener failed: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: ProgressSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class TranscodeEngine(ABC):
    """
    Abstract base class for transcoding engines.

    All engines must implement:
    - initialize: One-time runtime bootstrap
    - write_input / read_output / remove_file: Scratch file access
    - execute: Run one conversion with an explicit argument list
    - on_progress: Subscribe to progress fractions
    - close: Release the runtime and its workspace
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name for logs."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """
        Fetch and instantiate the runtime.

        Raises:
            EngineLoadError: If any required resource is unavailable
        """
        pass

    @abstractmethod
    async def write_input(self, name: str, data: bytes) -> None:
        pass

    @abstractmethod
    async def execute(self, args: List[str]) -> None:
        """
        Run the engine with the given argument list.

        Raises:
            TranscodeError: If the engine reports failure
        """
        pass

    @abstractmethod
    async def read_output(self, name: str) -> bytes:
        pass

    @abstractmethod
    async def remove_file(self, name: str) -> None:
        pass

    @abstractmethod
    def on_progress(self, callback: ProgressCallback) -> ProgressSubscription:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
