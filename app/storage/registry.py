from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from app.core.errors import JobNotFound
from app.core.logging import configure_logging
from app.models import CompressionJobView, CompressionResult, JobStatus

logger = configure_logging()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _JobEntry:
    job_id: str
    created_at: datetime
    status: JobStatus = JobStatus.compressing
    progress: int = 0
    result: Optional[CompressionResult] = None
    error: Optional[str] = None
    finished_at: Optional[datetime] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def view(self) -> CompressionJobView:
        return CompressionJobView(
            status=self.status,
            progress=self.progress,
            result=self.result,
            error=self.error,
        )


class JobRegistry:
    """
    سجل مهام ضغط الفيديو في الذاكرة.

    يُنشأ مرة واحدة عند بدء التطبيق ويُمرَّر إلى المسارات عبر ``app.state``.
    قفل الجدول يحمي الإضافة والحذف فقط، ولكل مهمة قفلها الخاص لتحديث حالتها،
    فلا تحجب مهمة أخرى. المهام المنتهية تُزال بعد انقضاء ``ttl``.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._jobs: Dict[str, _JobEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self) -> str:
        self.cleanup()
        entry = _JobEntry(job_id=uuid4().hex, created_at=self._clock())
        with self._lock:
            self._jobs[entry.job_id] = entry
        logger.info("Compression job created: %s", entry.job_id)
        return entry.job_id

    def _entry(self, job_id: str) -> _JobEntry:
        with self._lock:
            entry = self._jobs.get(job_id)
        if entry is None:
            raise JobNotFound()
        return entry

    def update(self, job_id: str, progress: float) -> bool:
        """تحديث نسبة التقدم؛ لا تنخفض النسبة ولا تتغير مهمة منتهية."""
        entry = self._entry(job_id)
        percent = max(0, min(100, int(progress)))
        with entry.lock:
            if entry.status.is_terminal:
                return False
            if percent > entry.progress:
                entry.progress = percent
            return True

    def complete(self, job_id: str, result: CompressionResult) -> bool:
        return self._finish(job_id, JobStatus.done, result=result)

    def fail(self, job_id: str, message: str) -> bool:
        return self._finish(job_id, JobStatus.error, error=message)

    def _finish(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: Optional[CompressionResult] = None,
        error: Optional[str] = None,
    ) -> bool:
        entry = self._entry(job_id)
        with entry.lock:
            if entry.status.is_terminal:
                logger.warning(
                    "Ignoring %s for job %s: already %s", status.value, job_id, entry.status.value
                )
                return False
            entry.status = status
            entry.result = result
            entry.error = error
            if status is JobStatus.done:
                entry.progress = 100
            entry.finished_at = self._clock()
        logger.info("Compression job %s finished: %s", job_id, status.value)
        return True

    def get(self, job_id: str) -> CompressionJobView:
        self.cleanup()
        entry = self._entry(job_id)
        with entry.lock:
            return entry.view()

    def cleanup(self) -> None:
        """حذف المهام المنتهية التي تجاوزت مدة الاحتفاظ."""
        now = self._clock()
        with self._lock:
            expired = [
                job_id
                for job_id, entry in self._jobs.items()
                if entry.finished_at is not None and now - entry.finished_at > self._ttl
            ]
            for job_id in expired:
                self._jobs.pop(job_id, None)
