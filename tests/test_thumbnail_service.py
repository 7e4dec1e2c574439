from io import BytesIO

import pytest
from PIL import Image

from app.models import MediaKind
from app.scripts.generate_thumbnails import main
from app.services.thumbnail_service import ThumbnailGenerator
from conftest import make_image_bytes


@pytest.fixture
def thumbnails(storage):
    return ThumbnailGenerator(storage, width=800, quality=85)


def test_thumbnail_name_is_derived_from_source():
    assert ThumbnailGenerator.thumbnail_name("abc123.png") == "thumb_abc123.jpg"
    assert ThumbnailGenerator.thumbnail_name("abc_compressed.jpg") == "thumb_abc_compressed.jpg"


def test_generate_downscales_to_fixed_width(thumbnails, storage, stored_image):
    thumb = thumbnails.generate(stored_image)

    assert thumb.filename == f"thumb_{stored_image.stem}.jpg"
    assert thumb.url == f"/uploads/{thumb.filename}"
    with Image.open(thumb.path) as img:
        assert img.size == (800, 600)
    assert stored_image.path.exists()


def test_generate_does_not_upscale(thumbnails, storage):
    stored = storage.store("tiny.png", BytesIO(make_image_bytes(320, 200, fmt="PNG")), "image/png", MediaKind.image)

    thumb = thumbnails.generate(stored)

    with Image.open(thumb.path) as img:
        assert img.size == (320, 200)


def test_generate_is_idempotent(thumbnails, settings, stored_image):
    first = thumbnails.generate(stored_image)
    second = thumbnails.generate(stored_image)

    assert first.filename == second.filename
    thumbs = [path.name for path in settings.uploads_dir.iterdir() if path.name.startswith("thumb_")]
    assert thumbs == [first.filename]
    assert not any(path.name.endswith(".partial") for path in settings.uploads_dir.iterdir())


def test_backfill_skips_existing_unless_forced(thumbnails, storage, settings):
    first = storage.store("a.jpg", BytesIO(make_image_bytes(900, 600)), "image/jpeg", MediaKind.image)
    second = storage.store("b.png", BytesIO(make_image_bytes(200, 100, fmt="PNG")), "image/png", MediaKind.image)
    broken = storage.store("c.jpg", BytesIO(b"garbage"), "image/jpeg", MediaKind.image)
    thumbnails.generate(first)

    report = thumbnails.backfill()
    assert report.skipped == [first.filename]
    assert report.generated == [f"thumb_{second.stem}.jpg"]
    assert report.failed == [broken.filename]
    assert not (settings.uploads_dir / f"thumb_{broken.stem}.jpg").exists()

    forced = thumbnails.backfill(force=True)
    assert sorted(forced.generated) == sorted([f"thumb_{first.stem}.jpg", f"thumb_{second.stem}.jpg"])
    assert forced.skipped == []


def test_backfill_cli(settings, storage, capsys):
    storage.store("a.jpg", BytesIO(make_image_bytes(900, 600)), "image/jpeg", MediaKind.image)

    exit_code = main(["--uploads-dir", str(settings.uploads_dir)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Done: 1 generated, 0 skipped, 0 failed" in out

    main(["--uploads-dir", str(settings.uploads_dir)])
    assert "Done: 0 generated, 1 skipped, 0 failed" in capsys.readouterr().out


def test_backfill_cli_reports_failures(settings, storage, capsys):
    storage.store("bad.jpg", BytesIO(b"garbage"), "image/jpeg", MediaKind.image)

    assert main(["--uploads-dir", str(settings.uploads_dir), "--force"]) == 1
    assert "1 failed" in capsys.readouterr().out
