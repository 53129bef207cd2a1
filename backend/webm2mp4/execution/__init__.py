"""
Execution layer: the transcoding engine and its adapter.

FFmpeg is the sole engine. The adapter is the only entry point the
job controller uses.
"""

from .errors import (
    ExecutionError,
    EngineLoadError,
    TranscodeError,
)
from .base import (
    ProgressCallback,
    ProgressChannel,
    ProgressSubscription,
    TranscodeEngine,
)
from .bootstrap import (
    BootstrapStrategy,
    PathDiscoveryBootstrap,
    ExplicitBinaryBootstrap,
    select_bootstrap,
)
from .ffmpeg import FFmpegEngine
from .adapter import EngineAdapter

__all__ = [
    # Errors
    "ExecutionError",
    "EngineLoadError",
    "TranscodeError",
    # Engine contract
    "ProgressCallback",
    "ProgressChannel",
    "ProgressSubscription",
    "TranscodeEngine",
    # Bootstrap strategies
    "BootstrapStrategy",
    "PathDiscoveryBootstrap",
    "ExplicitBinaryBootstrap",
    "select_bootstrap",
    # Implementations
    "FFmpegEngine",
    "EngineAdapter",
]
