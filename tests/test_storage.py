from io import BytesIO

import pytest

from app.core.errors import PayloadTooLarge, UnsupportedMediaType
from app.models import MediaKind
from app.storage.local import LocalStorage
from conftest import make_image_bytes, stored_names


class DummyUploadFile:
    def __init__(self, filename: str, content_type: str, data: bytes, size=None):
        self.filename = filename
        self.content_type = content_type
        self.file = BytesIO(data)
        self.size = len(data) if size is None else size


def test_store_generates_unique_names_with_original_extension(storage):
    first = storage.store("photo.PNG", BytesIO(b"a"), "image/png", MediaKind.image)
    second = storage.store("photo.PNG", BytesIO(b"b"), "image/png", MediaKind.image)

    assert first.filename != second.filename
    assert first.filename.endswith(".PNG")
    assert len(first.stem) == 32
    assert first.url == f"/uploads/{first.filename}"
    assert first.path.read_bytes() == b"a"
    assert first.size_bytes == 1
    assert first.kind is MediaKind.image


def test_store_falls_back_to_mime_extension(storage):
    stored = storage.store("blob", BytesIO(b"data"), "video/mp4", MediaKind.video)
    assert stored.filename.endswith(".mp4")


def test_mime_parameters_are_ignored(storage):
    stored = storage.store("a.jpg", BytesIO(b"x"), "IMAGE/JPEG; charset=binary", MediaKind.image)
    assert stored.mime_type == "image/jpeg"


@pytest.mark.parametrize(
    "mime, kind",
    [
        ("text/plain", MediaKind.image),
        ("application/pdf", MediaKind.image),
        ("video/mp4", MediaKind.image),
        ("image/png", MediaKind.video),
        ("video/x-matroska", MediaKind.video),
        (None, MediaKind.image),
    ],
)
def test_rejects_mime_outside_allow_list_before_writing(storage, settings, mime, kind):
    with pytest.raises(UnsupportedMediaType):
        storage.store("notes.txt", BytesIO(b"hello"), mime, kind)
    assert stored_names(settings) == []


@pytest.mark.parametrize(
    "mime",
    ["image/jpeg", "image/png", "image/webp", "image/gif", "image/x-icon", "image/svg+xml"],
)
def test_accepts_image_allow_list(storage, mime):
    assert storage.validate(MediaKind.image, mime) == mime


def test_declared_video_size_rejected_eagerly(storage, settings):
    storage.size_limits[MediaKind.video] = 10
    upload = DummyUploadFile("clip.mp4", "video/mp4", b"x" * 5, size=11)

    with pytest.raises(PayloadTooLarge):
        storage.save_upload(upload, MediaKind.video)
    assert stored_names(settings) == []


def test_streamed_video_over_limit_leaves_no_partial_file(storage, settings):
    storage.size_limits[MediaKind.video] = 10
    storage.CHUNK_SIZE = 4

    with pytest.raises(PayloadTooLarge):
        storage.store("clip.mp4", BytesIO(b"x" * 25), "video/mp4", MediaKind.video)
    assert stored_names(settings) == []


def test_zero_limit_disables_ceiling(storage):
    storage.size_limits[MediaKind.image] = 0
    stored = storage.store("big.jpg", BytesIO(b"x" * 2048), "image/jpeg", MediaKind.image)
    assert stored.size_bytes == 2048


def test_save_upload_reads_from_start(storage):
    upload = DummyUploadFile("cover.jpg", "image/jpeg", b"jpegbytes")
    upload.file.seek(4)

    stored = storage.save_upload(upload, MediaKind.image)

    assert stored.path.read_bytes() == b"jpegbytes"


@pytest.mark.parametrize("name", ["../escape.jpg", "nested/file.jpg", ""])
def test_path_for_rejects_non_plain_names(storage, name):
    with pytest.raises(ValueError):
        storage.path_for(name)


def test_iter_images_skips_thumbnails_and_videos(storage, settings):
    image = storage.store("a.jpg", BytesIO(make_image_bytes(20, 20)), "image/jpeg", MediaKind.image)
    storage.store("b.mp4", BytesIO(b"v"), "video/mp4", MediaKind.video)
    storage.store("c.svg", BytesIO(b"<svg/>"), "image/svg+xml", MediaKind.image)
    (settings.uploads_dir / f"thumb_{image.stem}.jpg").write_bytes(b"t")

    assert [stored.filename for stored in storage.iter_images()] == [image.filename]


def test_delete_is_idempotent(storage, stored_image):
    storage.delete(stored_image.filename)
    storage.delete(stored_image.filename)
    assert not storage.exists(stored_image.filename)


def test_custom_url_prefix(settings):
    storage = LocalStorage(settings.uploads_dir, url_prefix="/media/", settings=settings)
    assert storage.url_for("x.jpg") == "/media/x.jpg"
