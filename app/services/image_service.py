from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from app.core.errors import CompressionFailed
from app.core.logging import configure_logging
from app.models import CompressionResult
from app.storage.local import LocalStorage, StoredFile
from app.storage.replacement import Replacement

logger = configure_logging()


def _flatten(img: Image.Image) -> Image.Image:
    """JPEG لا يدعم الشفافية: ندمج الصورة فوق خلفية بيضاء."""
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


def encode_jpeg(
    source: Path,
    output: Path,
    *,
    quality: int,
    max_width: Optional[int] = None,
) -> Tuple[int, int]:
    """
    فك ترميز صورة، تصغيرها اختياريًا مع الحفاظ على النسبة، ثم حفظها كـ JPEG.

    لا تُكبَّر الصورة أبدًا إذا كان عرضها أقل من ``max_width``.
    تعيد أبعاد الصورة الناتجة.
    """
    try:
        with Image.open(source) as img:
            img.load()
            img = _flatten(img)
            if max_width and img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            img.save(output, format="JPEG", quality=quality, optimize=True)
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise CompressionFailed(f"تعذر معالجة الصورة {source.name}: {exc}") from exc


class ImageCompressor:
    """ضغط الصور بشكل متزامن داخل الطلب نفسه."""

    def __init__(self, storage: LocalStorage | None = None, default_quality: int = 80) -> None:
        self.storage = storage or LocalStorage()
        self.default_quality = default_quality

    def compress(
        self,
        stored: StoredFile,
        quality: Optional[int] = None,
        max_width: Optional[int] = None,
    ) -> CompressionResult:
        quality = quality or self.default_quality
        output_name = f"{stored.stem}_compressed.jpg"

        with Replacement(self.storage, stored, output_name) as replacement:
            width, height = encode_jpeg(
                stored.path,
                replacement.output_path,
                quality=quality,
                max_width=max_width or None,
            )

        result = replacement.result
        logger.info(
            "Image compressed: %s -> %s (%dx%d, %d -> %d bytes)",
            stored.filename,
            result.filename,
            width,
            height,
            result.original_size,
            result.compressed_size,
        )
        return result
