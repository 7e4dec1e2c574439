from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Dict, Iterable, Iterator, Optional
from uuid import uuid4

from fastapi import UploadFile

from app.core.config import Settings, get_settings
from app.core.errors import PayloadTooLarge, UnsupportedMediaType
from app.models import MediaKind

IMAGE_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/x-icon",
        "image/vnd.microsoft.icon",
        "image/svg+xml",
    }
)
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/webm", "video/quicktime"})

ALLOWED_MIME_TYPES: Dict[MediaKind, frozenset] = {
    MediaKind.image: IMAGE_MIME_TYPES,
    MediaKind.video: VIDEO_MIME_TYPES,
}

# امتدادات الصور النقطية التي تُنشأ لها صور مصغرة
RASTER_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
THUMBNAIL_PREFIX = "thumb_"


@dataclass(frozen=True)
class StoredFile:
    filename: str
    path: Path
    url: str
    size_bytes: int
    kind: MediaKind
    mime_type: str

    @property
    def stem(self) -> str:
        return self.path.stem


def normalize_mime(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


class LocalStorage:
    """تخزين الملفات المرفوعة على القرص تحت مجلد عام يُخدَّم كملفات ثابتة."""

    CHUNK_SIZE = 1024 * 1024

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        *,
        url_prefix: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_dir = Path(base_dir or settings.uploads_dir)
        self.url_prefix = (url_prefix or settings.uploads_url_prefix).rstrip("/")
        self.size_limits: Dict[MediaKind, int] = {
            MediaKind.image: settings.image_max_bytes,
            MediaKind.video: settings.video_max_bytes,
        }

        self.base_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _generate_filename(suffix: str) -> str:
        suffix = suffix if suffix.startswith(".") else f".{suffix.lstrip('.')}"
        return f"{uuid4().hex}{suffix}"

    # ------------------------------------------------------------------
    # التحقق قبل أي كتابة على القرص
    # ------------------------------------------------------------------
    def validate(self, kind: MediaKind, mime_type: Optional[str], size: Optional[int] = None) -> str:
        mime = normalize_mime(mime_type)
        if mime not in ALLOWED_MIME_TYPES[kind]:
            raise UnsupportedMediaType(f"نوع الملف غير مدعوم ({mime or 'unknown'}) لرفع ملفات {kind.value}.")
        if size is not None:
            self._check_size(kind, size)
        return mime

    def _check_size(self, kind: MediaKind, size: int) -> None:
        limit = self.size_limits.get(kind) or 0
        if limit and size > limit:
            raise PayloadTooLarge(
                f"حجم الملف يتجاوز الحد المسموح ({limit // (1024 * 1024)} ميغابايت)."
            )

    # ------------------------------------------------------------------
    # الحفظ
    # ------------------------------------------------------------------
    def save_upload(self, upload: UploadFile, kind: MediaKind) -> StoredFile:
        self.validate(kind, upload.content_type, getattr(upload, "size", None))
        upload.file.seek(0)
        return self.store(upload.filename or "", upload.file, upload.content_type, kind)

    def store(
        self,
        original_name: str,
        stream: IO[bytes],
        mime_type: Optional[str],
        kind: MediaKind,
    ) -> StoredFile:
        mime = self.validate(kind, mime_type)
        suffix = Path(original_name).suffix or mimetypes.guess_extension(mime) or ".bin"
        path = self._save_stream(stream, suffix=suffix, kind=kind)
        return self.describe(path.name, kind=kind, mime_type=mime)

    def _save_stream(self, stream: IO[bytes], *, suffix: str, kind: MediaKind) -> Path:
        target_path = self.base_dir / self._generate_filename(suffix)
        written = 0
        try:
            # "x" يمنع الكتابة فوق ملف موجود
            with target_path.open("xb") as buffer:
                while True:
                    chunk = stream.read(self.CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    self._check_size(kind, written)
                    buffer.write(chunk)
        except BaseException:
            target_path.unlink(missing_ok=True)
            raise
        return target_path

    # ------------------------------------------------------------------
    # الوصول إلى الملفات المخزنة
    # ------------------------------------------------------------------
    def path_for(self, filename: str) -> Path:
        if not filename or Path(filename).name != filename:
            raise ValueError(f"Invalid stored filename: {filename!r}")
        return self.base_dir / filename

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def describe(
        self,
        filename: str,
        *,
        kind: Optional[MediaKind] = None,
        mime_type: Optional[str] = None,
    ) -> StoredFile:
        path = self.path_for(filename)
        mime = mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        if kind is None:
            kind = MediaKind.video if mime.startswith("video/") else MediaKind.image
        return StoredFile(
            filename=filename,
            path=path,
            url=self.url_for(filename),
            size_bytes=path.stat().st_size,
            kind=kind,
            mime_type=mime,
        )

    def delete(self, filename: str) -> None:
        self.path_for(filename).unlink(missing_ok=True)

    def iter_images(self) -> Iterator[StoredFile]:
        """الصور الأصلية المخزنة (دون الصور المصغرة)."""
        for path in sorted(self.base_dir.iterdir()):
            if not path.is_file() or path.name.startswith(THUMBNAIL_PREFIX):
                continue
            if path.suffix.lower() in RASTER_IMAGE_EXTENSIONS:
                yield self.describe(path.name, kind=MediaKind.image)

    def cleanup(self, paths: Iterable[Path]) -> None:
        for path in paths:
            if path and path.exists():
                path.unlink(missing_ok=True)
