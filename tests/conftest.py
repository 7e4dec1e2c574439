"""
Shared fixtures for the media pipeline tests.

Every test gets its own uploads directory under ``tmp_path`` and its own
application instance, so registries and stored files never leak between tests.
The transcoder is replaced by ``FakeVideoCompressor``; no ffmpeg is needed.
"""

import os
import threading
from io import BytesIO
from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.core.config import Settings
from app.main import create_app
from app.models import MediaKind
from app.storage.local import LocalStorage, StoredFile
from app.storage.replacement import Replacement


def make_image_bytes(
    width: int = 1600,
    height: int = 1200,
    fmt: str = "JPEG",
    mode: str = "RGB",
    noisy: bool = True,
    **save_kwargs,
) -> bytes:
    """Encode a test image; noise keeps JPEG sizes realistic."""
    if noisy and mode == "RGB":
        img = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    else:
        img = Image.new(mode, (width, height), color=(200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30))
    buffer = BytesIO()
    if fmt == "JPEG" and "quality" not in save_kwargs:
        save_kwargs["quality"] = 95
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


class FakeVideoCompressor:
    """Replaces ffmpeg: reports the given progress steps and writes a smaller file."""

    def __init__(
        self,
        storage: LocalStorage,
        steps: Iterable[int] = (10, 35, 35, 80),
        fail_with: Optional[BaseException] = None,
        gate: Optional[threading.Event] = None,
        barrier: Optional[threading.Barrier] = None,
    ) -> None:
        self.storage = storage
        self.steps = list(steps)
        self.fail_with = fail_with
        self.gate = gate
        self.barrier = barrier

    def compress(self, stored: StoredFile, preset, on_progress=None):
        with Replacement(self.storage, stored, f"{stored.stem}_compressed.mp4") as replacement:
            replacement.output_path.write_bytes(b"\x00" * max(1, stored.size_bytes // 2))
            if self.barrier is not None:
                self.barrier.wait(timeout=5)
            if self.gate is not None:
                self.gate.wait(timeout=5)
            for step in self.steps:
                if on_progress:
                    on_progress(step)
            if self.fail_with is not None:
                raise self.fail_with
        return replacement.result


@pytest.fixture
def settings(tmp_path):
    settings = Settings(
        _env_file=None,
        base_dir=tmp_path,
        video_timeout_seconds=0,
        admin_token=None,
    )
    settings.configure_paths()
    return settings


@pytest.fixture
def storage(settings):
    return LocalStorage(settings.uploads_dir, settings=settings)


@pytest.fixture
def stored_image(storage):
    return storage.store("cover.jpg", BytesIO(make_image_bytes()), "image/jpeg", MediaKind.image)


@pytest.fixture
def stored_video(storage):
    return storage.store("clip.mp4", BytesIO(b"\x01" * 4096), "video/mp4", MediaKind.video)


@pytest.fixture
def app(settings):
    application = create_app(settings)
    yield application
    application.state.video_jobs.shutdown(wait=True)


@pytest.fixture
def client(app):
    return TestClient(app)


def stored_names(settings) -> list:
    return sorted(path.name for path in settings.uploads_dir.iterdir())
