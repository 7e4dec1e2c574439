from .common import CompressionJobView, CompressionResult, JobStatus, MediaKind
from .compress import VideoPreset
from .upload import UploadResponse, VideoJobAccepted

__all__ = [
    "CompressionJobView",
    "CompressionResult",
    "JobStatus",
    "MediaKind",
    "UploadResponse",
    "VideoJobAccepted",
    "VideoPreset",
]
