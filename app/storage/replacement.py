from __future__ import annotations

from pathlib import Path
from typing import Optional

from app.core.errors import CompressionFailed
from app.models import CompressionResult
from app.storage.local import LocalStorage, StoredFile


class Replacement:
    """
    استبدال ملف مخزن بنسخته المضغوطة ضمن نطاق واحد.

    داخل الكتلة يكتب الضاغط إلى ``output_path``. عند الخروج الطبيعي يُحذف الأصل
    ويُحسب الحجمان، وعند أي استثناء يُحذف الناتج الجزئي ويبقى الأصل كما هو.
    في الحالتين يبقى على القرص ملف واحد فقط من الاثنين.
    """

    def __init__(self, storage: LocalStorage, source: StoredFile, output_name: str) -> None:
        self.storage = storage
        self.source = source
        self.output_name = output_name
        self.output_path: Path = storage.path_for(output_name)
        self.original_size = 0
        self.result: Optional[CompressionResult] = None

    def __enter__(self) -> "Replacement":
        if not self.source.path.is_file():
            raise CompressionFailed(f"الملف الأصلي غير موجود: {self.source.filename}")
        self.original_size = self.source.path.stat().st_size
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False

        if not self.output_path.is_file() or self.output_path.stat().st_size == 0:
            self.rollback()
            raise CompressionFailed("لم تُنتج عملية الضغط ملفًا صالحًا.")

        self.commit()
        return False

    def rollback(self) -> None:
        self.storage.cleanup([self.output_path])

    def commit(self) -> None:
        compressed_size = self.output_path.stat().st_size
        # الأصل لا يُحذف إلا بعد اكتمال كتابة الناتج
        self.storage.delete(self.source.filename)
        self.result = CompressionResult(
            url=self.storage.url_for(self.output_name),
            filename=self.output_name,
            original_size=self.original_size,
            compressed_size=compressed_size,
        )
