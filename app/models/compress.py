from enum import Enum


class VideoPreset(str, Enum):
    """إعدادات ضغط الفيديو المتاحة؛ لكل منها دقة وجودة ثابتتان."""

    light = "light"
    medium = "medium"
    heavy = "heavy"
