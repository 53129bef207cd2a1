"""
webm2mp4 service: local WebM → MP4 conversion

The engine starts loading as soon as the application starts; the API
is available immediately and reports BOOTSTRAPPING until it is ready.

Nothing is built at import time. Run with `webm2mp4 serve`, or
`uvicorn webm2mp4.main:create_app --factory`.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import ConverterSettings
from .execution.adapter import EngineAdapter
from .execution.bootstrap import select_bootstrap
from .execution.ffmpeg import FFmpegEngine
from .jobs.controller import ConversionController
from .notifications.center import NotificationCenter
from .outputs.handles import OutputHandleRegistry
from .routes import control

logger = logging.getLogger(__name__)


def build_adapter(settings: ConverterSettings) -> EngineAdapter:
    """Construct the FFmpeg engine adapter for the configured bootstrap strategy."""
    engine = FFmpegEngine(
        bootstrap=select_bootstrap(settings),
        workdir_root=settings.workdir_root,
        timeout_seconds=settings.transcode_timeout_seconds,
    )
    return EngineAdapter(engine)


def build_controller(
    settings: ConverterSettings,
    adapter: Optional[EngineAdapter] = None,
) -> ConversionController:
    return ConversionController(
        adapter=adapter or build_adapter(settings),
        handles=OutputHandleRegistry(),
        notifications=NotificationCenter(),
        recovery_delay_seconds=settings.recovery_delay_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller: ConversionController = app.state.controller

    # Bootstrap in the background so the API can report BOOTSTRAPPING
    app.state.bootstrap_task = asyncio.create_task(controller.start())
    logger.info("[Service] Engine bootstrap started")

    try:
        yield
    finally:
        bootstrap_task = app.state.bootstrap_task
        if not bootstrap_task.done():
            bootstrap_task.cancel()
            try:
                await bootstrap_task
            except asyncio.CancelledError:
                pass
        await controller.teardown()
        logger.info("[Service] Shut down")


def create_app(
    settings: Optional[ConverterSettings] = None,
    adapter: Optional[EngineAdapter] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Service settings (defaults to environment)
        adapter: Pre-built engine adapter; mainly for tests

    Returns:
        FastAPI app owning exactly one ConversionController
    """
    settings = settings or ConverterSettings.from_env()

    app = FastAPI(title="webm2mp4", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.controller = build_controller(settings, adapter)

    app.include_router(control.router)

    @app.get("/")
    async def root():
        return {"service": "webm2mp4", "status": "running"}

    return app
