# app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api import routers
from app.core.config import Settings, get_settings
from app.core.errors import MediaError
from app.core.logging import configure_logging
from app.services.image_service import ImageCompressor
from app.services.thumbnail_service import ThumbnailGenerator
from app.services.video_jobs import VideoJobRunner
from app.services.video_service import VideoCompressor
from app.storage.local import LocalStorage
from app.storage.registry import JobRegistry

logger = configure_logging()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """بناء التطبيق وكل مكوناته مرة واحدة، وتخزينها في app.state."""
    settings = settings or get_settings()

    storage = LocalStorage(settings.uploads_dir, settings=settings)
    registry = JobRegistry(ttl=timedelta(seconds=settings.job_ttl_seconds))
    video_jobs = VideoJobRunner(
        VideoCompressor(
            storage,
            ffmpeg_binary=settings.ffmpeg_binary,
            timeout=settings.video_timeout_seconds,
        ),
        registry,
        max_workers=settings.video_workers,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # ننتظر المهام الجارية حتى لا تبقى عمليات ffmpeg يتيمة
        app.state.video_jobs.shutdown(wait=True)

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    app.state.settings = settings
    app.state.storage = storage
    app.state.registry = registry
    app.state.image_compressor = ImageCompressor(storage, default_quality=settings.default_image_quality)
    app.state.thumbnails = ThumbnailGenerator(
        storage, width=settings.thumbnail_width, quality=settings.thumbnail_quality
    )
    app.state.video_jobs = video_jobs

    # === CORS ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Errors ===
    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError) -> JSONResponse:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # === Routers ===
    for router in routers:
        app.include_router(router)

    # === Static uploads ===
    app.mount(
        settings.uploads_url_prefix,
        StaticFiles(directory=str(settings.uploads_dir)),
        name="uploads",
    )

    @app.get("/health")
    async def health_check() -> dict:
        logger.debug("Health check invoked")
        return {"status": "ok", "message": "Media API is running"}

    return app


app = create_app()
