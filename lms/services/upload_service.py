"""Multipart upload handling: validation, temp staging and hand-off to media storage."""

import uuid
from pathlib import Path
from typing import Optional

import structlog
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from lms.config import Settings
from lms.core.errors import ValidationError
from lms.models.user import MediaRef
from lms.services.media_storage_service import MediaStorage
from lms.utils.validators import file_extension, validate_file_extension

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class UploadService:
    """
    Stages an incoming file in ``UPLOAD_TMP_DIR`` and pushes it to media storage.

    The staged file is always removed, whether the upload succeeded or not.
    """

    def __init__(self, storage: MediaStorage, settings: Settings):
        self.storage = storage
        self.tmp_dir = Path(settings.UPLOAD_TMP_DIR)
        self.max_size = settings.MAX_UPLOAD_SIZE
        self.allowed_extensions = list(settings.ALLOWED_UPLOAD_EXTENSIONS)
        self.folder = settings.MEDIA_FOLDER

    def check_extension(self, filename: Optional[str]) -> None:
        if not validate_file_extension(filename, self.allowed_extensions):
            ext = file_extension(filename)
            raise ValidationError(f"Unsupported file type! .{ext}" if ext else "Unsupported file type!")

    def _staging_path(self, filename: str) -> Path:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        return self.tmp_dir / f"{uuid.uuid4().hex}_{Path(filename).name}"

    async def _stage(self, file: UploadFile, staged: Path) -> None:
        size = 0
        out = await run_in_threadpool(open, staged, "wb")
        try:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_size:
                    raise ValidationError(
                        f"File too large, maximum size is {self.max_size // (1024 * 1024)}MB"
                    )
                await run_in_threadpool(out.write, chunk)
        finally:
            await run_in_threadpool(out.close)

    async def upload(self, file: UploadFile, subfolder: str = "") -> MediaRef:
        """Validate, stage and upload ``file``; returns its media reference."""
        folder = f"{self.folder}/{subfolder}" if subfolder else self.folder
        staged: Optional[Path] = None
        try:
            self.check_extension(file.filename)
            staged = self._staging_path(file.filename)
            await self._stage(file, staged)
            return await self.storage.upload(staged, file.filename, folder)
        finally:
            if staged is not None:
                self._cleanup(staged)
            await file.close()

    async def upload_optional(self, file: Optional[UploadFile], subfolder: str = "") -> Optional[MediaRef]:
        """Upload when a file was actually sent; an empty file field counts as none."""
        if file is None or not file.filename:
            return None
        return await self.upload(file, subfolder)

    def _cleanup(self, staged: Path) -> None:
        try:
            staged.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("upload_cleanup_failed", path=str(staged), error=str(e))

    async def discard(self, ref: Optional[MediaRef]) -> None:
        """Remove a file uploaded for a request that failed afterwards."""
        if ref is not None:
            await self.storage.delete_quietly(ref.public_id)
