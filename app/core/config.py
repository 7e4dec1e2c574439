from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """إعدادات خدمة الوسائط مع تحميل القيم من ملف .env عند توفره."""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Artist Media API"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    base_dir: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    public_dir: Optional[Path] = None
    uploads_dir: Optional[Path] = None
    uploads_url_prefix: str = "/uploads"

    # حدود الرفع بالبايت (0 يعني بلا حد)
    video_max_bytes: int = 100 * 1024 * 1024
    image_max_bytes: int = 10 * 1024 * 1024

    default_image_quality: int = Field(default=80, ge=1, le=100)
    thumbnail_width: int = Field(default=800, ge=1)
    thumbnail_quality: int = Field(default=85, ge=1, le=100)
    thumbnails_on_upload: bool = True

    ffmpeg_binary: str = "ffmpeg"
    video_timeout_seconds: float = 3600
    video_workers: int = Field(default=2, ge=1)
    job_ttl_seconds: int = 900

    admin_token: Optional[str] = None

    allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    def configure_paths(self) -> None:
        """تهيئة المسارات الافتراضية وإنشاء المجلدات في حال غيابها."""
        self.public_dir = (self.public_dir or (self.base_dir / "public")).resolve()
        self.uploads_dir = (self.uploads_dir or (self.public_dir / "uploads")).resolve()

        for directory in (self.public_dir, self.uploads_dir):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.configure_paths()
    return settings
