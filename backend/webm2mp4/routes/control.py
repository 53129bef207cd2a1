"""
Control API for the conversion controller.

Local, single-user surface for the presentation layer:
- Poll the current job
- Offer a file (raw body, declared type in Content-Type)
- Start a conversion, cancel a selection, reset
- Download or revoke the converted output
- Read recent transient notifications

Every state change goes through the controller. Routes never touch the
engine or the job directly.
"""

import re
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from ..jobs.controller import ConversionController
from ..jobs.errors import JobError
from ..jobs.models import SourceFile
from ..outputs.errors import HandleNotFoundError
from .models import (
    HealthResponse,
    JobView,
    NotificationListResponse,
    RevokeResponse,
    SelectionRejected,
)


router = APIRouter(tags=["control"])


def _controller(request: Request) -> ConversionController:
    return request.app.state.controller


def _view(controller: ConversionController) -> JobView:
    return JobView.from_job(controller.job, engine_ready=controller.adapter.ready())


_UNSAFE_FILENAME_CHARS = re.compile(r'[^\x20-\x7e]|["\\]')


def _content_disposition(filename: str) -> str:
    # Plain ASCII fallback plus the RFC 5987 form for anything else
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    encoded = quote(filename)
    if encoded == filename:
        return f'attachment; filename="{filename}"'
    return f'attachment; filename="{fallback}"; ' + f"filename*=UTF-8''{encoded}"


def _declared_media_type(content_type: Optional[str]) -> str:
    # Parameters (e.g. codecs=...) are not part of the declared type
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    controller = _controller(request)
    return HealthResponse(
        status="ok",
        engine_ready=controller.adapter.ready(),
        job_status=controller.status,
    )


@router.get("/api/job", response_model=JobView)
async def get_job(request: Request):
    """
    Current job state.

    Poll this while BOOTSTRAPPING or CONVERTING.
    """
    return _view(_controller(request))


@router.post("/api/job/select", response_model=JobView)
async def select_file(
    request: Request,
    filename: str = Query(..., min_length=1, description="Original file name"),
):
    """
    Offer a candidate file.

    The request body is the file. Its Content-Type is the declared media
    type and must be exactly ``video/webm``.

    Returns:
        JobView in SELECTED

    Raises:
        409: If the controller is not accepting files
        422: If the declared type is wrong (the job is left IDLE)
    """
    controller = _controller(request)
    data = await request.body()
    source = SourceFile(
        name=filename,
        media_type=_declared_media_type(request.headers.get("content-type")),
        data=data,
    )

    try:
        accepted = controller.select_file(source)
    except JobError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not accepted:
        recent = controller.notifications.recent(1)
        rejected = SelectionRejected(
            notification=recent[0] if recent else None,
            job=_view(controller),
        )
        return JSONResponse(status_code=422, content=rejected.model_dump(mode="json"))

    return _view(controller)


@router.post("/api/job/convert", response_model=JobView, status_code=202)
async def start_conversion(request: Request):
    """
    Start converting the selected file.

    Returns immediately in CONVERTING. A second request while a
    conversion is running is rejected, not queued.

    Raises:
        409: If no file is selected or a conversion is already running
    """
    controller = _controller(request)
    try:
        controller.start_conversion()
    except JobError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(controller)


@router.post("/api/job/cancel", response_model=JobView)
async def cancel_selection(request: Request):
    controller = _controller(request)
    try:
        controller.cancel()
    except JobError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(controller)


@router.post("/api/job/reset", response_model=JobView)
async def reset_job(request: Request):
    """
    Return to IDLE ("convert another" / "try again").

    Releases the output handle if one is held.

    Raises:
        409: While bootstrapping or converting, or after an engine load failure
    """
    controller = _controller(request)
    try:
        controller.reset()
    except JobError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(controller)


@router.get("/api/outputs/{token}")
async def download_output(token: str, request: Request):
    """
    Fetch converted bytes through their handle.

    Raises:
        404: If the handle is unknown or revoked
    """
    controller = _controller(request)
    try:
        handle, data = controller.handles.fetch(token)
    except HandleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return Response(
        content=data,
        media_type=handle.media_type,
        headers={"Content-Disposition": _content_disposition(handle.filename)},
    )


@router.delete("/api/outputs/{token}", response_model=RevokeResponse)
async def revoke_output(token: str, request: Request):
    """Revoke a handle. Idempotent."""
    controller = _controller(request)
    revoked = controller.handles.revoke(token)
    return RevokeResponse(token=token, revoked=revoked)


@router.get("/api/notifications", response_model=NotificationListResponse)
async def list_notifications(request: Request, limit: int = Query(10, ge=0, le=50)):
    controller = _controller(request)
    return NotificationListResponse(notifications=controller.notifications.recent(limit))
