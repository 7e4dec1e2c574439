from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from app.core.errors import CompressionFailed
from app.core.logging import configure_logging
from app.services.image_service import encode_jpeg
from app.storage.local import THUMBNAIL_PREFIX, LocalStorage, StoredFile

logger = configure_logging()


@dataclass
class SweepReport:
    generated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.generated)} generated, "
            f"{len(self.skipped)} skipped, "
            f"{len(self.failed)} failed"
        )


class ThumbnailGenerator:
    """إنشاء صور مصغرة بعرض ثابت تحمل اسمًا مشتقًا من اسم المصدر."""

    def __init__(self, storage: LocalStorage | None = None, width: int = 800, quality: int = 85) -> None:
        self.storage = storage or LocalStorage()
        self.width = width
        self.quality = quality

    @staticmethod
    def thumbnail_name(source_name: str) -> str:
        base, _ = os.path.splitext(source_name)
        return f"{THUMBNAIL_PREFIX}{base}.jpg"

    def generate(self, stored: StoredFile) -> StoredFile:
        """إنشاء (أو استبدال) الصورة المصغرة للملف المعطى."""
        name = self.thumbnail_name(stored.filename)
        target = self.storage.path_for(name)
        # نكتب في ملف مؤقت ثم نستبدل، فلا يُترك مصغر ناقص مكان مصغر سليم
        partial = target.with_name(f".{name}.partial")
        try:
            encode_jpeg(stored.path, partial, quality=self.quality, max_width=self.width)
            os.replace(partial, target)
        finally:
            partial.unlink(missing_ok=True)
        return self.storage.describe(name)

    def backfill(self, force: bool = False) -> SweepReport:
        """مسح الصور المخزنة وإنشاء المصغرات الناقصة."""
        report = SweepReport()
        for stored in self.storage.iter_images():
            name = self.thumbnail_name(stored.filename)
            if not force and self.storage.exists(name):
                report.skipped.append(stored.filename)
                continue
            try:
                self.generate(stored)
            except CompressionFailed as exc:
                logger.warning("Thumbnail failed for %s: %s", stored.filename, exc)
                report.failed.append(stored.filename)
            else:
                report.generated.append(name)
        logger.info("Thumbnail sweep done: %s", report.summary())
        return report
