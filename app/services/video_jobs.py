from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from app.core.errors import CompressionFailed
from app.core.logging import configure_logging
from app.models import VideoPreset
from app.services.video_service import VideoCompressor
from app.storage.local import StoredFile
from app.storage.registry import JobRegistry

logger = configure_logging()


class VideoJobRunner:
    """
    تشغيل ضغط الفيديو في الخلفية وربطه بمهمة في السجل.

    ``submit`` يعود فورًا بمعرّف المهمة. العامل يكتب التقدم والنتيجة في السجل فقط،
    ولا يصل أي استثناء منه إلى الطلب الأصلي.
    """

    def __init__(
        self,
        compressor: VideoCompressor,
        registry: JobRegistry,
        max_workers: int = 2,
    ) -> None:
        self.compressor = compressor
        self.registry = registry
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="video-compress")

    def submit(self, stored: StoredFile, preset: VideoPreset) -> str:
        job_id = self.registry.create()
        self._executor.submit(self._run, job_id, stored, preset)
        logger.info("Video job %s queued for %s (preset=%s)", job_id, stored.filename, preset.value)
        return job_id

    def _run(self, job_id: str, stored: StoredFile, preset: VideoPreset) -> None:
        try:
            result = self.compressor.compress(
                stored,
                preset,
                on_progress=lambda percent: self.registry.update(job_id, percent),
            )
        except CompressionFailed as exc:
            self.registry.fail(job_id, exc.message)
        except Exception:
            logger.exception("Unexpected error in video job %s", job_id)
            self.registry.fail(job_id, "Compression failed")
        else:
            self.registry.complete(job_id, result)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
