import io
from pathlib import Path

import pytest
from starlette.datastructures import UploadFile

from lms.core.errors import UpstreamError, ValidationError
from lms.services.media_storage_service import LocalMediaStorage, MediaStorage
from lms.services.upload_service import UploadService

pytestmark = pytest.mark.anyio


class FailingStorage(MediaStorage):
    async def upload(self, path, filename, folder):
        assert path.exists()
        raise UpstreamError("File not uploaded, please try again")

    async def delete(self, public_id):
        raise UpstreamError("unavailable")


def upload_file(name, content=b"\x89PNG\r\n\x1a\nfake"):
    return UploadFile(file=io.BytesIO(content), filename=name)


def staged_files(settings):
    path = Path(settings.UPLOAD_TMP_DIR)
    return list(path.iterdir()) if path.exists() else []


async def test_upload_stores_file_and_removes_temp_copy(settings):
    storage = LocalMediaStorage(settings)
    service = UploadService(storage, settings)

    ref = await service.upload(upload_file("avatar.PNG"), subfolder="avatars")

    assert ref.public_id.startswith("lms/avatars/")
    assert ref.public_id.endswith("_avatar.PNG")
    assert ref.secure_url == f"http://testserver/media/{ref.public_id}"
    assert (storage.root / ref.public_id).read_bytes() == b"\x89PNG\r\n\x1a\nfake"
    assert staged_files(settings) == []


async def test_failed_upload_still_removes_temp_copy(settings):
    service = UploadService(FailingStorage(), settings)

    with pytest.raises(UpstreamError):
        await service.upload(upload_file("clip.mp4"))

    assert staged_files(settings) == []


@pytest.mark.parametrize("name", ["notes.pdf", "script.sh", "noextension", "image.gif"])
async def test_disallowed_extensions_are_rejected(settings, name):
    service = UploadService(LocalMediaStorage(settings), settings)
    upload = upload_file(name)

    with pytest.raises(ValidationError, match="Unsupported file type"):
        await service.upload(upload)

    assert upload.file.closed
    assert staged_files(settings) == []


async def test_oversized_file_is_rejected_and_cleaned_up(settings):
    small = settings.model_copy(update={"MAX_UPLOAD_SIZE": 8})
    service = UploadService(LocalMediaStorage(small), small)

    with pytest.raises(ValidationError, match="File too large"):
        await service.upload(upload_file("big.mp4", b"x" * 64))

    assert staged_files(small) == []


async def test_upload_optional_skips_missing_file(settings):
    service = UploadService(LocalMediaStorage(settings), settings)

    assert await service.upload_optional(None) is None
    assert await service.upload_optional(upload_file("")) is None


async def test_local_delete_and_quiet_failures(settings):
    storage = LocalMediaStorage(settings)
    ref = await UploadService(storage, settings).upload(upload_file("a.jpg"))

    await storage.delete(ref.public_id)
    assert not (storage.root / ref.public_id).exists()

    # Missing files and escaping ids do not raise from the quiet variant
    await storage.delete_quietly(ref.public_id)
    await storage.delete_quietly("../outside.jpg")
    await FailingStorage().delete_quietly("lms/x.jpg")
