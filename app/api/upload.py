from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool

from app.api.deps import (
    get_image_compressor,
    get_registry,
    get_settings_state,
    get_storage,
    get_thumbnails,
    get_video_jobs,
    require_admin,
)
from app.core.config import Settings
from app.core.errors import CompressionFailed
from app.core.logging import configure_logging
from app.models import MediaKind, UploadResponse, VideoJobAccepted, VideoPreset
from app.services.image_service import ImageCompressor
from app.services.thumbnail_service import ThumbnailGenerator
from app.services.video_jobs import VideoJobRunner
from app.storage.local import RASTER_IMAGE_EXTENSIONS, LocalStorage, StoredFile
from app.storage.registry import JobRegistry

router = APIRouter(prefix="/upload", tags=["Uploads"], dependencies=[Depends(require_admin)])

logger = configure_logging()


def _thumbnail_quietly(thumbnails: ThumbnailGenerator, stored: StoredFile) -> None:
    if stored.path.suffix.lower() not in RASTER_IMAGE_EXTENSIONS:
        return
    try:
        thumbnails.generate(stored)
    except CompressionFailed as exc:
        # المصغر اختياري: الصورة الأصلية تبقى صالحة
        logger.warning("Thumbnail generation failed for %s: %s", stored.filename, exc)


@router.post("", summary="رفع صورة مع ضغط اختياري")
async def upload_image(
    file: UploadFile = File(...),
    compress_quality: Optional[int] = Form(None, alias="compressQuality", ge=1, le=100),
    compress_max_width: Optional[int] = Form(None, alias="compressMaxWidth", ge=0),
    settings: Settings = Depends(get_settings_state),
    storage: LocalStorage = Depends(get_storage),
    compressor: ImageCompressor = Depends(get_image_compressor),
    thumbnails: ThumbnailGenerator = Depends(get_thumbnails),
) -> dict:
    stored = await run_in_threadpool(storage.save_upload, file, MediaKind.image)
    logger.info("Image uploaded: %s -> %s (%d bytes)", file.filename, stored.filename, stored.size_bytes)

    response = UploadResponse(url=stored.url, filename=stored.filename)

    if compress_quality is not None or compress_max_width is not None:
        result = await run_in_threadpool(compressor.compress, stored, compress_quality, compress_max_width)
        stored = storage.describe(result.filename, kind=MediaKind.image)
        response = UploadResponse(
            url=result.url,
            filename=result.filename,
            original_size=result.original_size,
            compressed_size=result.compressed_size,
        )

    if settings.thumbnails_on_upload:
        await run_in_threadpool(_thumbnail_quietly, thumbnails, stored)

    return response.model_dump(by_alias=True, exclude_none=True)


@router.post("/video", summary="رفع فيديو مع ضغط اختياري في الخلفية")
async def upload_video(
    file: UploadFile = File(...),
    compress_preset: Optional[VideoPreset] = Form(None, alias="compressPreset"),
    storage: LocalStorage = Depends(get_storage),
    video_jobs: VideoJobRunner = Depends(get_video_jobs),
) -> dict:
    stored = await run_in_threadpool(storage.save_upload, file, MediaKind.video)
    logger.info("Video uploaded: %s -> %s (%d bytes)", file.filename, stored.filename, stored.size_bytes)

    if compress_preset is None:
        return UploadResponse(url=stored.url, filename=stored.filename).model_dump(
            by_alias=True, exclude_none=True
        )

    # لا ننتظر ffmpeg: نعيد معرّف المهمة فورًا
    job_id = video_jobs.submit(stored, compress_preset)
    return VideoJobAccepted(job_id=job_id).model_dump(by_alias=True)


@router.get("/video/status/{job_id}", summary="حالة مهمة ضغط الفيديو")
async def video_status(job_id: str, registry: JobRegistry = Depends(get_registry)) -> dict:
    view = registry.get(job_id)
    return view.model_dump(mode="json", by_alias=True, exclude_none=True)
