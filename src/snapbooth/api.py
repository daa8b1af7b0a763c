"""HTTP surface for capture, restyle and export."""

import asyncio
import logging
import threading
from typing import List, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from . import __version__
from .errors import SnapboothError, ValidationError
from .models import STYLES
from .editor import FILTERS
from .services import DiskStorage, MediaService

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


def _service(request: Request) -> MediaService:
    return request.app.state.service


def _read(upload: UploadFile) -> bytes:
    data = upload.file.read()
    if not data:
        raise ValidationError(f"Empty upload: {upload.filename or 'file'}")
    return data


def _photo_response(artifact) -> dict:
    return {"success": True, "photo": artifact.to_response()}


async def _restyle_until_disconnect(
    request: Request,
    frame: bytes,
    style: str,
    event_id: str,
    custom_prompt: Optional[str],
    source_photo_id: Optional[str],
):
    """Run a restyle in a worker thread, cancelling it if the client leaves."""
    service = _service(request)
    cancel = threading.Event()
    task = asyncio.ensure_future(
        run_in_threadpool(
            service.restyle,
            frame,
            style,
            event_id,
            cancel,
            custom_prompt,
            source_photo_id,
        )
    )
    while not task.done():
        if await request.is_disconnected():
            logger.info(f"Client left during restyle for event {event_id}, cancelling")
            cancel.set()
            break
        await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
    return await task


def create_app(service: Optional[MediaService] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        service: Media service to serve. Built from configuration if omitted.
    """
    service = service or MediaService.from_config()

    app = FastAPI(
        title="SnapBooth Media API",
        version=__version__,
        description="Branded photos, strips, GIFs, AI restyles and event archives.",
    )
    app.state.service = service

    if isinstance(service.storage, DiskStorage):
        app.mount("/media", StaticFiles(directory=str(service.storage.root)), name="media")

    @app.exception_handler(SnapboothError)
    async def handle_snapbooth_error(request: Request, exc: SnapboothError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    @app.post("/api/photos/upload")
    def upload_photo(
        request: Request,
        photo: UploadFile = File(...),
        eventId: str = Form(...),
        sessionId: Optional[str] = Form(None),
    ) -> dict:
        artifact = _service(request).encode_single(_read(photo), eventId, session_id=sessionId)
        return _photo_response(artifact)

    @app.post("/api/photos/strip")
    def upload_strip(
        request: Request,
        photos: List[UploadFile] = File(...),
        eventId: str = Form(...),
        sessionId: Optional[str] = Form(None),
    ) -> dict:
        frames = [_read(p) for p in photos]
        artifact = _service(request).encode_strip(frames, eventId, session_id=sessionId)
        return _photo_response(artifact)

    @app.post("/api/photos/gif")
    def upload_gif(
        request: Request,
        frames: List[UploadFile] = File(...),
        eventId: str = Form(...),
        sessionId: Optional[str] = Form(None),
        type: str = Form("gif"),
    ) -> dict:
        data = [_read(f) for f in frames]
        artifact = _service(request).encode_sequence(data, eventId, type, session_id=sessionId)
        return _photo_response(artifact)

    @app.get("/api/photos/event/{event_id}")
    def list_event_photos(request: Request, event_id: str) -> dict:
        artifacts = _service(request).list_artifacts(event_id)
        return {"photos": [a.to_response() for a in artifacts], "count": len(artifacts)}

    @app.get("/api/photos/event/{event_id}/zip")
    def download_event_zip(request: Request, event_id: str) -> StreamingResponse:
        stream = _service(request).export_archive(event_id)
        return StreamingResponse(
            iter(stream),
            media_type=stream.media_type,
            headers={"Content-Disposition": f'attachment; filename="{stream.filename}"'},
        )

    @app.delete("/api/photos/event/{event_id}")
    def wipe_event_photos(request: Request, event_id: str) -> dict:
        removed = _service(request).wipe_event(event_id)
        return {"success": True, "deleted": removed}

    @app.get("/api/ai/styles")
    def list_styles() -> dict:
        return {
            "styles": [
                {"key": s.key, "name": s.name, "emoji": s.emoji} for s in STYLES.values()
            ],
            "filters": list(FILTERS),
        }

    @app.post("/api/ai/generate")
    async def generate(
        request: Request,
        photo: UploadFile = File(...),
        eventId: str = Form(...),
        style: str = Form(...),
        customPrompt: Optional[str] = Form(None),
        photoId: Optional[str] = Form(None),
    ) -> dict:
        frame = await photo.read()
        if not frame:
            raise ValidationError("No photo provided")
        artifact = await _restyle_until_disconnect(
            request, frame, style, eventId, customPrompt, photoId
        )
        return _photo_response(artifact)

    @app.post("/api/ai/surprise")
    async def surprise(
        request: Request,
        photo: UploadFile = File(...),
        eventId: str = Form(...),
        photoId: Optional[str] = Form(None),
    ) -> dict:
        frame = await photo.read()
        if not frame:
            raise ValidationError("No photo provided")
        artifact = await _restyle_until_disconnect(
            request, frame, "surprise", eventId, None, photoId
        )
        return _photo_response(artifact)

    @app.post("/api/ai/filter")
    def filter_photo(
        request: Request,
        photo: UploadFile = File(...),
        eventId: str = Form(...),
        filter: str = Form(...),
    ) -> dict:
        artifact = _service(request).encode_filtered(_read(photo), filter, eventId)
        return _photo_response(artifact)

    logger.debug(f"API ready with {type(service.storage).__name__} storage")
    return app
