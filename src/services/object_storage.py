"""Object storage for generated scene media.

Generated images and narration come back from the models as raw payloads;
they are written to object storage and referenced by public URL from then on.

Two backends:
- R2Storage: Cloudflare R2 (S3-compatible) via boto3, public URLs from a CDN base
- LocalStorage: files under a local folder, served by the API at /media
"""

import asyncio
import logging
import mimetypes
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"


class ObjectStorageError(Exception):
    """Error from object storage."""

    pass


def guess_content_type(key: str) -> str:
    """Guess a MIME type from the object key's extension."""
    content_type, _ = mimetypes.guess_type(key)
    if content_type is None:
        content_type = {
            ".png": "image/png",
            ".jpg": "image/jpeg",
            ".webp": "image/webp",
            ".wav": "audio/wav",
            ".mp3": "audio/mpeg",
        }.get(Path(key).suffix.lower(), "application/octet-stream")
    return content_type


class ObjectStorage(ABC):
    """Abstract base class for media storage backends."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store bytes under a key.

        Args:
            key: Object key (path within the bucket/folder)
            data: File contents
            content_type: MIME type (guessed from the key if not provided)

        Returns:
            Public URL of the stored object

        Raises:
            ObjectStorageError: If the write fails
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if it did not exist
        """

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL for a key."""

    def key_for_url(self, url: str | None) -> str | None:
        """Key behind a URL issued by ``public_url``; None for foreign URLs."""
        prefix = self.public_url("")
        if not url or not url.startswith(prefix) or url == prefix:
            return None
        return url[len(prefix):]

    async def delete_urls(self, urls: list[str | None]) -> int:
        """Delete the objects behind URLs this storage issued.

        URLs from elsewhere are skipped.

        Returns:
            Number of objects deleted
        """
        deleted = 0
        for url in urls:
            key = self.key_for_url(url)
            if key and await self.delete(key):
                deleted += 1
        return deleted


class R2Storage(ObjectStorage):
    """Cloudflare R2 object storage service.

    Uses boto3 with the S3-compatible API. boto3 is blocking, so calls run
    in a worker thread.
    """

    def __init__(
        self,
        account_id: str,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str = "reelsmith-media",
        public_base_url: str | None = None,
    ):
        """Initialize R2 storage.

        Args:
            account_id: Cloudflare account ID
            access_key_id: R2 API access key ID
            secret_access_key: R2 API secret access key
            bucket_name: R2 bucket name
            public_base_url: Public URL base for objects (bucket domain or CDN)
        """
        self.account_id = account_id
        self.bucket_name = bucket_name
        self.public_base_url = (public_base_url or "").rstrip("/")

        self._client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                signature_version="s3v4",
                # Uploads are not retried; a failed upload fails the asset.
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

        logger.info(f"R2 storage initialized for bucket: {bucket_name}")

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"s3://{self.bucket_name}/{key}"

    async def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        content_type = content_type or guess_content_type(key)
        try:
            await asyncio.to_thread(
                self._client.upload_fileobj,
                BytesIO(data),
                self.bucket_name,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise ObjectStorageError(f"Upload failed for {key}: {e}") from e

        logger.info(f"Uploaded {key} to R2 ({len(data)} bytes)")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket_name, Key=key
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                return False
            logger.error(f"Failed to delete {key}: {e}")
            raise ObjectStorageError(f"Delete failed for {key}: {e}") from e

        logger.info(f"Deleted {key} from R2")
        return True


class LocalStorage(ObjectStorage):
    """Stores media on the local filesystem for development.

    The API mounts ``root_dir`` at ``/media`` so the returned URLs resolve.
    """

    def __init__(self, root_dir: str, public_base_url: str = "http://localhost:8000"):
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root_dir / key).resolve()
        if self.root_dir.resolve() not in path.parents:
            raise ObjectStorageError(f"Key escapes storage root: {key}")
        return path

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}{MEDIA_URL_PREFIX}/{key}"

    async def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise ObjectStorageError(f"Upload failed for {key}: {e}") from e

        logger.debug(f"Stored {key} locally ({len(data)} bytes)")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True


def create_storage(config: dict) -> ObjectStorage:
    """Build the storage backend selected by ``STORAGE_BACKEND``."""
    if config.get("storage_backend") == "r2":
        return R2Storage(
            account_id=config["r2_account_id"],
            access_key_id=config["r2_access_key_id"],
            secret_access_key=config["r2_secret_access_key"],
            bucket_name=config.get("r2_bucket", "reelsmith-media"),
            public_base_url=config.get("r2_public_url"),
        )
    return LocalStorage(
        root_dir=config.get("local_media_dir", "media"),
        public_base_url=config.get("public_base_url", "http://localhost:8000"),
    )
