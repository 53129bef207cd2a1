"""
Conversion progress from ffmpeg stderr.

ffmpeg announces the input length once, in the input section:
    Duration: 00:00:05.02, start: 0.000000, bitrate: 1043 kb/s

then rewrites a status line (terminated by \\r) while encoding:
    frame=   24 fps= 12 q=28.0 size=       0kB time=00:00:01.00 bitrate=   0.0kbits/s

fraction = time / Duration, capped at 1.0.

Recorded WebM frequently says "Duration: N/A". Without a length there
is no fraction; the position is still tracked.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

_CLOCK = r'(\d{2}):(\d{2}):(\d{2})\.(\d{2})'

DURATION_PATTERN = re.compile(r'Duration:\s*' + _CLOCK)
TIME_PATTERN = re.compile(r'time=' + _CLOCK)
FRAME_PATTERN = re.compile(r'frame=\s*(\d+)')
FPS_PATTERN = re.compile(r'fps=\s*([\d.]+)')


def _clock_seconds(match: "re.Match[str]") -> float:
    hours, minutes, seconds, hundredths = (int(g) for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds + hundredths / 100.0


@dataclass
class ProgressInfo:
    fraction: float = 0.0  # 0.0 - 1.0, only meaningful once duration is known
    current_time: float = 0.0  # seconds
    total_duration: float = 0.0  # seconds, 0.0 = unknown
    current_frame: int = 0
    encoding_fps: float = 0.0
    updated_at: datetime = field(default_factory=datetime.now)


class ProgressParser:
    """
    Line-at-a-time stderr reader.

    The first Duration seen belongs to the input; later ones (output
    section) are ignored. Fractions go to ``on_progress`` as they are
    computed. Regressions are passed through untouched.
    """

    def __init__(self, on_progress: Optional[Callable[[float], None]] = None):
        self.on_progress = on_progress
        self._info = ProgressInfo()

    @property
    def duration(self) -> float:
        return self._info.total_duration

    def parse_line(self, line: str) -> Optional[ProgressInfo]:
        """
        Feed one stderr line.

        Returns:
            The updated ProgressInfo when the line produced a fraction,
            None otherwise
        """
        info = self._info

        if info.total_duration <= 0:
            announced = DURATION_PATTERN.search(line)
            if announced:
                info.total_duration = _clock_seconds(announced)
                return None

        position = TIME_PATTERN.search(line)
        if position is None:
            return None

        info.current_time = _clock_seconds(position)
        frame = FRAME_PATTERN.search(line)
        if frame:
            info.current_frame = int(frame.group(1))
        fps = FPS_PATTERN.search(line)
        if fps:
            info.encoding_fps = float(fps.group(1))
        info.updated_at = datetime.now()

        if info.total_duration <= 0:
            return None

        info.fraction = min(1.0, info.current_time / info.total_duration)
        if self.on_progress is not None:
            self.on_progress(info.fraction)
        return info

    def get_progress(self) -> ProgressInfo:
        return self._info

    def reset(self) -> None:
        self._info = ProgressInfo()
