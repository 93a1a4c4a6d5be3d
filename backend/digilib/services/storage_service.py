"""
Storage Service - Object store for uploaded library documents

Two backends share one interface:
- LocalObjectStore: files under LOCAL_STORAGE_DIR, served by the /files route
- S3ObjectStore: AWS S3 or MinIO through boto3

Both retry transient failures with exponential backoff and surface
exhausted retries as StorageError (a BackendUnavailableError).
"""

import asyncio
import io
import re
import time
import uuid
from dataclasses import dataclass
from functools import wraps
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from digilib.core.config import Settings
from digilib.core.exceptions import StorageError, StoredFileNotFoundError
from digilib.core.logging_config import logger


ProgressCallback = Callable[[int, int], None]

UPLOAD_CHUNK_SIZE = 256 * 1024

TRANSIENT_ERRORS = (ClientError, BotoCoreError, ConnectionError, TimeoutError, OSError)


def retry_with_backoff(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """
    Decorator for retry logic with exponential backoff on async store methods.

    Args:
        max_retries: Maximum number of attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except StoredFileNotFoundError:
                    raise
                except TRANSIENT_ERRORS as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(f"[Storage-Retry] {func.__name__} attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay:.1f}s...")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"[Storage-Retry] {func.__name__}: all {max_retries} attempts failed: {e}")
            raise StorageError(f"Object store unavailable: {last_exception}")
        return wrapper
    return decorator


def normalize_path(path: str) -> str:
    """
    Normalize an object path to "a/b/c" form.

    Rejects empty paths and parent-directory segments so a path can never
    escape the store's root.
    """
    normalized = path.replace("\\", "/").strip("/")
    parts = PurePosixPath(normalized).parts
    if not parts or any(part in ("..", ".") for part in parts):
        raise ValueError(f"Invalid object path: {path!r}")
    return "/".join(parts)


def build_material_path(file_name: str) -> str:
    """
    Object path for a newly uploaded material.

    Format: materials/{epoch_ms}_{random8}_{safe_name}
    """
    safe_name = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(file_name or "document.pdf").name).strip("._")
    return f"materials/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe_name or 'document.pdf'}"


@dataclass
class StoredObject:
    """Result of a completed upload"""
    path: str
    url: str
    size: int
    content_type: str


class ObjectStore:
    """Interface shared by all object store backends"""

    async def upload(self, path: str, content: bytes, content_type: str,
                     progress: Optional[ProgressCallback] = None) -> StoredObject:
        raise NotImplementedError

    async def delete(self, path: str) -> bool:
        """Delete an object. Returns False when nothing was stored at ``path``."""
        raise NotImplementedError

    async def exists(self, path: str) -> bool:
        raise NotImplementedError

    def url_for(self, path: str) -> str:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store for development and tests"""

    def __init__(self, root: Path, public_url: str, retries: int = 3, base_delay: float = 1.0):
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")
        self.retries = retries
        self.base_delay = base_delay
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalObjectStore initialized at {self.root}")

    def resolve(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def url_for(self, path: str) -> str:
        return f"{self.public_url}/{normalize_path(path)}"

    def _write(self, target: Path, content: bytes, progress: Optional[ProgressCallback]) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        total = len(content)
        written = 0
        with open(target, "wb") as f:
            for offset in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = content[offset:offset + UPLOAD_CHUNK_SIZE]
                f.write(chunk)
                written += len(chunk)
                if progress:
                    progress(written, total)
        if total == 0 and progress:
            progress(0, 0)

    async def upload(self, path: str, content: bytes, content_type: str,
                     progress: Optional[ProgressCallback] = None) -> StoredObject:
        path = normalize_path(path)

        @retry_with_backoff(max_retries=self.retries, base_delay=self.base_delay)
        async def _upload():
            await asyncio.to_thread(self._write, self.resolve(path), content, progress)

        await _upload()
        logger.info(f"[Storage] Uploaded: {path} ({len(content)} bytes)")
        return StoredObject(path=path, url=self.url_for(path), size=len(content), content_type=content_type)

    async def delete(self, path: str) -> bool:
        target = self.resolve(path)

        @retry_with_backoff(max_retries=self.retries, base_delay=self.base_delay)
        async def _delete() -> bool:
            try:
                await asyncio.to_thread(target.unlink)
            except FileNotFoundError:
                return False
            return True

        deleted = await _delete()
        if deleted:
            logger.info(f"[Storage] Deleted: {path}")
        else:
            logger.warning(f"[Storage] Nothing to delete at {path}")
        return deleted

    async def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def open_path(self, path: str) -> Path:
        """Filesystem path for serving a stored object"""
        target = self.resolve(path)
        if not target.is_file():
            raise StoredFileNotFoundError(path)
        return target


class S3ObjectStore(ObjectStore):
    """AWS S3 / MinIO object store"""

    def __init__(self, settings: Settings, use_minio: bool = False):
        self._settings = settings
        self._use_minio = use_minio
        self._bucket_name = settings.S3_BUCKET_NAME
        self._client = None
        self.retries = settings.STORAGE_DELETE_RETRIES
        self.base_delay = settings.STORAGE_RETRY_BASE_DELAY
        logger.info(f"S3ObjectStore initialized with bucket: {self._bucket_name} (minio={use_minio})")

    def _get_client(self):
        """Lazy initialization of S3/MinIO client"""
        if self._client is None:
            s = self._settings
            if self._use_minio:
                self._client = boto3.client(
                    's3',
                    endpoint_url=f"http://{s.MINIO_ENDPOINT}",
                    aws_access_key_id=s.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=s.AWS_SECRET_ACCESS_KEY,
                    config=Config(signature_version='s3v4', s3={'addressing_style': 'path'}),
                    region_name=s.AWS_REGION
                )
            elif s.AWS_ACCESS_KEY_ID and s.AWS_SECRET_ACCESS_KEY:
                self._client = boto3.client(
                    's3',
                    aws_access_key_id=s.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=s.AWS_SECRET_ACCESS_KEY,
                    region_name=s.AWS_REGION
                )
            else:
                # Use IAM role credentials (automatic in ECS/EC2)
                self._client = boto3.client('s3', region_name=s.AWS_REGION)
        return self._client

    def url_for(self, path: str) -> str:
        path = normalize_path(path)
        s = self._settings
        if s.S3_PUBLIC_URL:
            return f"{s.S3_PUBLIC_URL.rstrip('/')}/{path}"
        if self._use_minio:
            return f"http://{s.MINIO_ENDPOINT}/{self._bucket_name}/{path}"
        return f"https://{self._bucket_name}.s3.{s.AWS_REGION}.amazonaws.com/{path}"

    async def ensure_bucket(self) -> None:
        """Create bucket if it doesn't exist"""
        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_bucket, Bucket=self._bucket_name)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', '')
            if error_code not in ['404', 'NoSuchBucket']:
                raise StorageError(f"Cannot access bucket '{self._bucket_name}': {e}")
            kwargs = {"Bucket": self._bucket_name}
            if not self._use_minio and self._settings.AWS_REGION != 'us-east-1':
                kwargs["CreateBucketConfiguration"] = {'LocationConstraint': self._settings.AWS_REGION}
            await asyncio.to_thread(client.create_bucket, **kwargs)
            logger.info(f"Created bucket '{self._bucket_name}'")

    async def upload(self, path: str, content: bytes, content_type: str,
                     progress: Optional[ProgressCallback] = None) -> StoredObject:
        path = normalize_path(path)
        client = self._get_client()
        total = len(content)

        @retry_with_backoff(max_retries=self.retries, base_delay=self.base_delay)
        async def _upload():
            transferred = 0

            # boto3 reports per-chunk byte counts from its transfer threads
            def _callback(bytes_amount: int) -> None:
                nonlocal transferred
                transferred += bytes_amount
                if progress:
                    progress(transferred, total)

            await asyncio.to_thread(
                client.upload_fileobj,
                io.BytesIO(content),
                self._bucket_name,
                path,
                ExtraArgs={'ContentType': content_type},
                Callback=_callback
            )

        await _upload()
        logger.info(f"[S3-Upload] Uploaded: {path} ({total} bytes)")
        return StoredObject(path=path, url=self.url_for(path), size=total, content_type=content_type)

    async def exists(self, path: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_object, Bucket=self._bucket_name, Key=normalize_path(path))
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code', '') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    async def delete(self, path: str) -> bool:
        path = normalize_path(path)
        client = self._get_client()

        @retry_with_backoff(max_retries=self.retries, base_delay=self.base_delay)
        async def _delete() -> bool:
            # S3 deletes are silent on missing keys, so check first to report NotFound
            if not await self.exists(path):
                return False
            await asyncio.to_thread(client.delete_object, Bucket=self._bucket_name, Key=path)
            return True

        deleted = await _delete()
        if deleted:
            logger.info(f"[S3-Delete] Deleted: {path}")
        else:
            logger.warning(f"[S3-Delete] Nothing to delete at {path}")
        return deleted


def create_object_store(settings: Settings) -> ObjectStore:
    """Build the object store selected by STORAGE_MODE"""
    mode = settings.STORAGE_MODE.lower()
    if mode == "local":
        return LocalObjectStore(
            settings.STORAGE_DIR,
            settings.PUBLIC_FILES_URL,
            retries=settings.STORAGE_DELETE_RETRIES,
            base_delay=settings.STORAGE_RETRY_BASE_DELAY,
        )
    if mode in ("s3", "minio"):
        return S3ObjectStore(settings, use_minio=(mode == "minio"))
    raise ValueError(f"Unknown STORAGE_MODE: {settings.STORAGE_MODE}")
