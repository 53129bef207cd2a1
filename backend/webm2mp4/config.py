"""
ConverterSettings: service configuration.

Settings are immutable once the service starts. Every field has a
default suitable for a local desktop install; environment variables
override them (optional, advanced).

Environment overrides:
    WEBM2MP4_BOOTSTRAP        discover | explicit
    WEBM2MP4_FFMPEG_PATH      ffmpeg binary (required for "explicit")
    WEBM2MP4_WORKDIR          parent directory for engine scratch space
    WEBM2MP4_RECOVERY_DELAY   seconds in FAILED before returning to IDLE
    WEBM2MP4_TIMEOUT          per-conversion timeout in seconds (unset = none)
    WEBM2MP4_HOST / WEBM2MP4_PORT
    WEBM2MP4_LOG_LEVEL
    WEBM2MP4_CORS_ORIGINS     comma-separated
"""

import os
from dataclasses import dataclass, field, asdict, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

BOOTSTRAP_STRATEGIES = ("discover", "explicit")

ENV_PREFIX = "WEBM2MP4_"
ENV_BOOTSTRAP = ENV_PREFIX + "BOOTSTRAP"
ENV_FFMPEG_PATH = ENV_PREFIX + "FFMPEG_PATH"
ENV_WORKDIR = ENV_PREFIX + "WORKDIR"
ENV_RECOVERY_DELAY = ENV_PREFIX + "RECOVERY_DELAY"
ENV_TIMEOUT = ENV_PREFIX + "TIMEOUT"
ENV_HOST = ENV_PREFIX + "HOST"
ENV_PORT = ENV_PREFIX + "PORT"
ENV_LOG_LEVEL = ENV_PREFIX + "LOG_LEVEL"
ENV_CORS_ORIGINS = ENV_PREFIX + "CORS_ORIGINS"


@dataclass(frozen=True)
class ConverterSettings:
    """
    Complete, immutable service configuration.

    Exactly one bootstrap strategy is active per deployment.
    """

    bootstrap_strategy: str = "discover"
    ffmpeg_path: Optional[str] = None
    workdir_root: Optional[str] = None

    recovery_delay_seconds: float = 3.0
    transcode_timeout_seconds: Optional[float] = None

    host: str = "127.0.0.1"
    port: int = 8086
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("http://localhost:5173",))

    def __post_init__(self):
        if self.bootstrap_strategy not in BOOTSTRAP_STRATEGIES:
            raise ValueError(
                f"bootstrap_strategy must be one of {BOOTSTRAP_STRATEGIES}, "
                f"got {self.bootstrap_strategy!r}"
            )
        if self.recovery_delay_seconds < 0:
            raise ValueError("recovery_delay_seconds must not be negative")
        if self.transcode_timeout_seconds is not None and self.transcode_timeout_seconds <= 0:
            raise ValueError("transcode_timeout_seconds must be positive")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["cors_origins"] = list(self.cors_origins)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConverterSettings":
        """
        Build settings from a dictionary.

        Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        values = dict(data)
        if "cors_origins" in values:
            values["cors_origins"] = tuple(values["cors_origins"])
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConverterSettings":
        """Default settings with environment overrides applied."""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        if env.get(ENV_BOOTSTRAP):
            overrides["bootstrap_strategy"] = env[ENV_BOOTSTRAP].strip().lower()
        if env.get(ENV_FFMPEG_PATH):
            overrides["ffmpeg_path"] = env[ENV_FFMPEG_PATH]
        if env.get(ENV_WORKDIR):
            overrides["workdir_root"] = env[ENV_WORKDIR]
        if env.get(ENV_RECOVERY_DELAY):
            overrides["recovery_delay_seconds"] = float(env[ENV_RECOVERY_DELAY])
        if env.get(ENV_TIMEOUT):
            overrides["transcode_timeout_seconds"] = float(env[ENV_TIMEOUT])
        if env.get(ENV_HOST):
            overrides["host"] = env[ENV_HOST]
        if env.get(ENV_PORT):
            overrides["port"] = int(env[ENV_PORT])
        if env.get(ENV_LOG_LEVEL):
            overrides["log_level"] = env[ENV_LOG_LEVEL].upper()
        if env.get(ENV_CORS_ORIGINS):
            overrides["cors_origins"] = tuple(
                origin.strip() for origin in env[ENV_CORS_ORIGINS].split(",") if origin.strip()
            )

        return cls(**overrides)

    def with_overrides(self, **changes: Any) -> "ConverterSettings":
        """Copy with some fields replaced. None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


DEFAULT_SETTINGS = ConverterSettings()
