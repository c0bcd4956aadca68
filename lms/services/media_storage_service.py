"""
Media storage for avatars, course thumbnails and lecture files.

Files are stored either on S3 or on the local filesystem (served under
``/media``), selected by ``MEDIA_STORAGE_TYPE``. Both backends expose the same
two operations: ``upload`` returns a ``MediaRef`` and ``delete`` removes a file
by its public id.
"""

import mimetypes
import shutil
import uuid
from pathlib import Path

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from lms.config import Settings
from lms.core.errors import UpstreamError
from lms.models.user import MediaRef

logger = structlog.get_logger(__name__)


def _object_name(folder: str, filename: str) -> str:
    return f"{folder.strip('/')}/{uuid.uuid4().hex}_{Path(filename).name}"


class MediaStorage:
    """Interface shared by the storage backends."""

    async def upload(self, path: Path, filename: str, folder: str) -> MediaRef:
        raise NotImplementedError

    async def delete(self, public_id: str) -> None:
        raise NotImplementedError

    async def delete_quietly(self, public_id: str) -> None:
        """Best-effort delete; failures are logged, not raised."""
        if not public_id:
            return
        try:
            await self.delete(public_id)
        except UpstreamError as e:
            logger.warning("media_delete_failed", public_id=public_id, error=e.message)


class LocalMediaStorage(MediaStorage):
    """Stores media in ``MEDIA_STORAGE_DIR`` and builds URLs from ``MEDIA_BASE_URL``."""

    def __init__(self, settings: Settings):
        self.root = Path(settings.MEDIA_STORAGE_DIR).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = settings.MEDIA_BASE_URL.rstrip("/")

    def _path_for(self, public_id: str) -> Path:
        path = (self.root / public_id).resolve()
        if self.root not in path.parents:
            raise UpstreamError(f"Invalid media id: {public_id}")
        return path

    def _copy(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

    async def upload(self, path: Path, filename: str, folder: str) -> MediaRef:
        public_id = _object_name(folder, filename)
        try:
            await run_in_threadpool(self._copy, Path(path), self._path_for(public_id))
        except OSError as e:
            logger.error("media_upload_failed", backend="local", error=str(e))
            raise UpstreamError("File not uploaded, please try again")
        logger.info("media_uploaded", backend="local", public_id=public_id)
        return MediaRef(public_id=public_id, secure_url=f"{self.base_url}/{public_id}")

    async def delete(self, public_id: str) -> None:
        path = self._path_for(public_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise UpstreamError(f"Failed to delete media: {e}")
        logger.info("media_deleted", backend="local", public_id=public_id)


class S3MediaStorage(MediaStorage):
    """Stores media in an S3 bucket."""

    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.S3_BUCKET_NAME
        self.region = settings.AWS_REGION
        self.client = client or boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
        )

    async def upload(self, path: Path, filename: str, folder: str) -> MediaRef:
        key = _object_name(folder, filename)
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            await run_in_threadpool(
                self.client.upload_file,
                str(path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("media_upload_failed", backend="s3", error=str(e))
            raise UpstreamError("File not uploaded, please try again")

        url = f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        logger.info("media_uploaded", backend="s3", public_id=key)
        return MediaRef(public_id=key, secure_url=url)

    async def delete(self, public_id: str) -> None:
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=public_id)
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError(f"Failed to delete media: {e}")
        logger.info("media_deleted", backend="s3", public_id=public_id)


def get_media_storage(settings: Settings) -> MediaStorage:
    """Return the storage backend selected by ``MEDIA_STORAGE_TYPE``."""
    storage_type = settings.MEDIA_STORAGE_TYPE.lower()

    if storage_type == "s3":
        if settings.S3_BUCKET_NAME:
            logger.info("media_storage_selected", backend="s3", bucket=settings.S3_BUCKET_NAME)
            return S3MediaStorage(settings)
        logger.warning("media_storage_s3_unconfigured", fallback="local")

    logger.info("media_storage_selected", backend="local", directory=settings.MEDIA_STORAGE_DIR)
    return LocalMediaStorage(settings)
