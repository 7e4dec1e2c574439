from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    image = "image"
    video = "video"


class JobStatus(str, Enum):
    compressing = "compressing"
    done = "done"
    error = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.compressing


class CompressionResult(BaseModel):
    """نتيجة ضغط ناجحة: موقع الملف الناتج وحجمه قبل وبعد الضغط."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    filename: str
    original_size: int = Field(..., alias="originalSize")
    compressed_size: int = Field(..., alias="compressedSize")


class CompressionJobView(BaseModel):
    """لقطة للقراءة فقط من حالة مهمة ضغط فيديو."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: JobStatus
    progress: int = Field(0, ge=0, le=100)
    result: Optional[CompressionResult] = None
    error: Optional[str] = None
