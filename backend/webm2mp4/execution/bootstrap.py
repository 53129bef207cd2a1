"""
Engine bootstrap strategies.

A bootstrap strategy answers one question: where is the ffmpeg runtime?
The engine then instantiates whatever the strategy resolved.

Two strategies exist and are interchangeable:
- PathDiscoveryBootstrap: search PATH, then common install locations
- ExplicitBinaryBootstrap: use an operator-supplied binary location

Design rules:
- Pick ONE strategy per deployment
- No fallback from one strategy to the other
- Every failure is an EngineLoadError naming the missing resource
"""

import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, TYPE_CHECKING

from .errors import EngineLoadError

if TYPE_CHECKING:
    from ..config import ConverterSettings

logger = logging.getLogger(__name__)


# Common install locations checked after PATH
COMMON_FFMPEG_PATHS: List[str] = [
    "/usr/local/bin/ffmpeg",
    "/usr/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
]


class BootstrapStrategy(ABC):
    """Resolves the ffmpeg binary for an engine."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def resolve_binary(self) -> str:
        """
        Locate the ffmpeg binary.

        Returns:
            Absolute path to an executable ffmpeg

        Raises:
            EngineLoadError: If no usable binary is found
        """
        pass


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


class PathDiscoveryBootstrap(BootstrapStrategy):
    """Find ffmpeg on PATH, falling back to well-known install locations."""

    def __init__(self, binary_name: str = "ffmpeg", search_paths: Optional[Sequence[str]] = None):
        self.binary_name = binary_name
        self.search_paths = list(search_paths) if search_paths is not None else list(COMMON_FFMPEG_PATHS)

    @property
    def name(self) -> str:
        return "discover"

    def resolve_binary(self) -> str:
        found = shutil.which(self.binary_name)
        if found:
            logger.info(f"[Bootstrap] Found {self.binary_name} on PATH: {found}")
            return found

        for path in self.search_paths:
            if _is_executable(path):
                logger.info(f"[Bootstrap] Found {self.binary_name} at {path}")
                return path

        raise EngineLoadError(
            f"{self.binary_name} is not installed or not in PATH",
            resource=self.binary_name,
        )


class ExplicitBinaryBootstrap(BootstrapStrategy):
    """Use exactly the configured ffmpeg binary. No searching."""

    def __init__(self, binary_path: Optional[str]):
        self.binary_path = binary_path

    @property
    def name(self) -> str:
        return "explicit"

    def resolve_binary(self) -> str:
        if not self.binary_path:
            raise EngineLoadError("no ffmpeg binary location configured")

        path = Path(self.binary_path).expanduser()
        if not path.exists():
            raise EngineLoadError("configured ffmpeg binary does not exist", resource=str(path))
        if not _is_executable(str(path)):
            raise EngineLoadError("configured ffmpeg binary is not executable", resource=str(path))

        resolved = str(path.resolve())
        logger.info(f"[Bootstrap] Using configured ffmpeg: {resolved}")
        return resolved


def select_bootstrap(settings: "ConverterSettings") -> BootstrapStrategy:
    """
    Build the bootstrap strategy named by the settings.

    Raises:
        ValueError: If the strategy name is unknown
    """
    if settings.bootstrap_strategy == "discover":
        return PathDiscoveryBootstrap()
    if settings.bootstrap_strategy == "explicit":
        return ExplicitBinaryBootstrap(settings.ffmpeg_path)
    raise ValueError(f"Unknown bootstrap strategy: {settings.bootstrap_strategy!r}")
