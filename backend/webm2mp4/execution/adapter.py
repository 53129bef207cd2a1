"""
Engine adapter.

Hides the one-time, potentially slow engine bootstrap behind a small
async surface:

    ready()                          -> bool
    await load()                     -> None   (EngineLoadError)
    await transcode(data, callback)  -> bytes  (TranscodeError)

Design rules:
- The engine is initialized at most once per adapter
- Concurrent load() calls share the in-flight initialization
- A failed load is remembered and re-raised; never retried
- One transcode at a time; a second concurrent call is rejected
- Progress subscriptions live exactly as long as one transcode call
- Scratch files are removed after every call, success or failure
"""

import asyncio
import logging
from typing import Optional

from .base import ProgressCallback, TranscodeEngine
from .errors import EngineLoadError, TranscodeError
from .formats import INPUT_NAME, OUTPUT_NAME, TRANSCODE_ARGS

logger = logging.getLogger(__name__)


class EngineAdapter:
    """
    Uniform async facade over a TranscodeEngine.

    The adapter is owned by whoever constructs it (normally the job
    controller via the application factory). There is no global instance.
    """

    def __init__(self, engine: TranscodeEngine):
        self._engine = engine
        self._ready = False
        self._load_task: Optional["asyncio.Future[None]"] = None
        self._busy = False

    @property
    def engine(self) -> TranscodeEngine:
        return self._engine

    def ready(self) -> bool:
        return self._ready

    @property
    def busy(self) -> bool:
        return self._busy

    async def load(self) -> None:
        """
        Initialize the engine exactly once.

        Raises:
            EngineLoadError: If the engine could not be initialized.
                Subsequent calls raise the same error.
        """
        if self._ready:
            return

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._initialize())

        # Shield: one impatient caller must not cancel everyone's load
        await asyncio.shield(self._load_task)

    async def _initialize(self) -> None:
        logger.info(f"[Engine] Loading {self._engine.name}")
        try:
            await self._engine.initialize()
        except EngineLoadError as e:
            logger.error(f"[Engine] {e}")
            raise
        except Exception as e:
            logger.exception(f"[Engine] Unexpected failure while loading {self._engine.name}")
            raise EngineLoadError(str(e) or type(e).__name__) from e

        self._ready = True
        logger.info(f"[Engine] {self._engine.name} ready")

    async def transcode(self, data: bytes, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """
        Convert one file.

        Args:
            data: Source file bytes
            on_progress: Optional callback receiving fractions in [0, 1]

        Returns:
            Converted file bytes

        Raises:
            TranscodeError: On any engine failure, or when called before
                load() succeeded, or while another transcode is running
        """
        if not self._ready:
            raise TranscodeError("engine is not loaded")
        if self._busy:
            raise TranscodeError("engine is already converting a file")

        self._busy = True
        subscription = self._engine.on_progress(on_progress) if on_progress else None
        logger.info(f"[Engine] Transcoding {len(data)} bytes")

        try:
            await self._engine.write_input(INPUT_NAME, data)
            await self._engine.execute(list(TRANSCODE_ARGS))
            output = await self._engine.read_output(OUTPUT_NAME)
        except TranscodeError:
            raise
        except Exception as e:
            logger.exception("[Engine] Unexpected failure during transcode")
            raise TranscodeError(str(e) or type(e).__name__) from e
        finally:
            if subscription is not None:
                subscription.cancel()
            await self._cleanup_scratch()
            self._busy = False

        logger.info(f"[Engine] Produced {len(output)} bytes")
        return output

    async def _cleanup_scratch(self) -> None:
        for name in (INPUT_NAME, OUTPUT_NAME):
            try:
                await self._engine.remove_file(name)
            except Exception as e:
                logger.warning(f"[Engine] Could not remove scratch file {name}: {e}")

    async def close(self) -> None:
        """Release the engine. The adapter is unusable afterwards."""
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._ready = False
        await self._engine.close()
