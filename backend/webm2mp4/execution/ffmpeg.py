"""
FFmpeg transcoding engine.

Real transcoding via asyncio subprocesses.

Design rules:
- One subprocess per conversion
- Private scratch directory per engine instance
- Full command string logged for audit
- Non-zero exit code = TranscodeError
- Missing or empty output = TranscodeError
- SIGTERM → SIGKILL escalation on close
- Progress parsed from stderr and pushed to subscribers
"""

import asyncio
import codecs
import logging
import re
import shutil
import tempfile
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional

from .base import ProgressCallback, ProgressChannel, ProgressSubscription, TranscodeEngine
from .bootstrap import BootstrapStrategy
from .errors import EngineLoadError, TranscodeError
from .progress import ProgressParser

logger = logging.getLogger(__name__)

# ffmpeg rewrites its progress line with \r, so split on both
_LINE_SPLIT = re.compile(r"[\r\n]")

STDERR_TAIL_LINES = 20
TERMINATE_GRACE_SECONDS = 5.0


class FFmpegEngine(TranscodeEngine):
    """
    FFmpeg-based transcoding engine.

    The binary is located by the bootstrap strategy and verified with
    ``ffmpeg -version`` during initialize().
    """

    def __init__(
        self,
        bootstrap: BootstrapStrategy,
        workdir_root: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._bootstrap = bootstrap
        self._workdir_root = workdir_root
        self._timeout_seconds = timeout_seconds

        self._ffmpeg_path: Optional[str] = None
        self._version: Optional[str] = None
        self._workdir: Optional[Path] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._progress = ProgressChannel()

    @property
    def name(self) -> str:
        return "FFmpeg"

    @property
    def version(self) -> Optional[str]:
        return self._version

    @property
    def workdir(self) -> Optional[Path]:
        return self._workdir

    async def initialize(self) -> None:
        if self._ffmpeg_path:
            return

        ffmpeg_path = self._bootstrap.resolve_binary()
        self._version = await self._probe_version(ffmpeg_path)

        try:
            self._workdir = Path(tempfile.mkdtemp(prefix="webm2mp4-", dir=self._workdir_root))
        except OSError as e:
            raise EngineLoadError(
                f"cannot create working directory: {e}",
                resource=self._workdir_root,
            ) from e

        self._ffmpeg_path = ffmpeg_path
        logger.info(f"[FFmpeg] Loaded {self._version} (workdir: {self._workdir})")

    async def _probe_version(self, ffmpeg_path: str) -> str:
        """Run ``ffmpeg -version`` and return its first line."""
        try:
            process = await asyncio.create_subprocess_exec(
                ffmpeg_path,
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise EngineLoadError(f"cannot start ffmpeg: {e}", resource=ffmpeg_path) from e

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise EngineLoadError(
                f"ffmpeg -version exited with code {process.returncode}: {detail}",
                resource=ffmpeg_path,
            )

        lines = stdout.decode("utf-8", errors="replace").splitlines()
        return lines[0].strip() if lines else "ffmpeg (unknown version)"

    def _path_for(self, name: str) -> Path:
        if self._workdir is None:
            raise TranscodeError("engine is not initialized")
        if not name or Path(name).name != name:
            raise TranscodeError(f"invalid scratch file name: {name!r}")
        return self._workdir / name

    async def write_input(self, name: str, data: bytes) -> None:
        target = self._path_for(name)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, target.write_bytes, data)
        except OSError as e:
            raise TranscodeError(f"cannot write input file: {e}") from e

    async def read_output(self, name: str) -> bytes:
        target = self._path_for(name)
        if not target.is_file():
            raise TranscodeError("Output file was not created")

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, target.read_bytes)
        except OSError as e:
            raise TranscodeError(f"cannot read output file: {e}") from e

        if not data:
            raise TranscodeError("Output file is empty")
        return data

    async def remove_file(self, name: str) -> None:
        target = self._path_for(name)
        target.unlink(missing_ok=True)

    def on_progress(self, callback: ProgressCallback) -> ProgressSubscription:
        return self._progress.subscribe(callback)

    async def execute(self, args: List[str]) -> None:
        if self._ffmpeg_path is None or self._workdir is None:
            raise TranscodeError("engine is not initialized")
        if self._process is not None:
            raise TranscodeError("engine is already executing")

        cmd = [self._ffmpeg_path, "-hide_banner", "-nostdin", "-y", *args]
        logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self._workdir),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"cannot start ffmpeg: {e}") from e

        self._process = process
        logger.info(f"[FFmpeg] Started PID {process.pid}")

        parser = ProgressParser(on_progress=self._progress.publish)
        tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)

        try:
            await asyncio.wait_for(
                self._consume_stderr(process, parser, tail),
                timeout=self._timeout_seconds,
            )
            exit_code = await process.wait()
        except asyncio.TimeoutError:
            logger.error(f"[FFmpeg] PID {process.pid} exceeded {self._timeout_seconds}s")
            await self._terminate(process)
            raise TranscodeError(f"timed out after {self._timeout_seconds}s")
        except asyncio.CancelledError:
            await self._terminate(process)
            raise
        finally:
            self._process = None

        logger.info(f"[FFmpeg] PID {process.pid} exited with code {exit_code}")

        if exit_code != 0:
            stderr_text = "\n".join(tail)
            failure_reason = tail[-1] if tail else f"FFmpeg exited with code {exit_code}"
            logger.error(f"[FFmpeg] Failed: {failure_reason}")
            raise TranscodeError(failure_reason, exit_code=exit_code, stderr=stderr_text)

    async def _consume_stderr(
        self,
        process: asyncio.subprocess.Process,
        parser: ProgressParser,
        tail: Deque[str],
    ) -> None:
        assert process.stderr is not None
        # Multibyte characters may straddle chunk boundaries
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                buffer += decoder.decode(b"", final=True)
                break
            buffer += decoder.decode(chunk)
            parts = _LINE_SPLIT.split(buffer)
            buffer = parts.pop()
            for line in parts:
                if line.strip():
                    tail.append(line)
                    parser.parse_line(line)

        if buffer.strip():
            tail.append(buffer)
            parser.parse_line(buffer)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM first, SIGKILL if the process ignores it."""
        if process.returncode is not None:
            return
        logger.info(f"[FFmpeg] Sending SIGTERM to PID {process.pid}")
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(f"[FFmpeg] PID {process.pid} did not terminate, sending SIGKILL")
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass  # Process already dead

    async def close(self) -> None:
        if self._process is not None:
            await self._terminate(self._process)
            self._process = None

        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            logger.info(f"[FFmpeg] Removed workdir {self._workdir}")
            self._workdir = None

        self._ffmpeg_path = None
