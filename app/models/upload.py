from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    filename: str
    original_size: Optional[int] = Field(default=None, alias="originalSize")
    compressed_size: Optional[int] = Field(default=None, alias="compressedSize")


class VideoJobAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    compressing: bool = True
