import io
import logging
import os
import time
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from minio import Minio
from starlette.concurrency import run_in_threadpool

from .config import settings, Settings

logger = logging.getLogger(__name__)


@dataclass
class UploadedBlob:
    """One file from a multipart upload, held in memory until stored."""
    field_name: str
    content_type: str
    filename: str
    data: bytes


class BlobStore(Protocol):
    async def save(self, blob: UploadedBlob) -> str: ...

    async def delete(self, url: str) -> None: ...


def object_name(blob: UploadedBlob) -> str:
    # <field>-<millis>-<random><ext>, e.g. audio-1718000000000-3f9a1c2b7.wav
    _, ext = os.path.splitext(blob.filename or "")
    field = blob.field_name or "file"
    return f"{field}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{ext.lower()}"


class LocalBlobStore:
    def __init__(self, root: str, url_prefix: str = "uploads"):
        self.root = root
        self.url_prefix = url_prefix.strip("/")

    def ensure_root(self):
        os.makedirs(self.root, exist_ok=True)

    def _write(self, path: str, data: bytes):
        self.ensure_root()
        with open(path, "wb") as f:
            f.write(data)

    async def save(self, blob: UploadedBlob) -> str:
        name = object_name(blob)
        await run_in_threadpool(self._write, os.path.join(self.root, name), blob.data)
        return f"{self.url_prefix}/{name}"

    async def delete(self, url: str) -> None:
        path = os.path.join(self.root, url.rsplit("/", 1)[-1])
        if os.path.exists(path):
            await run_in_threadpool(os.remove, path)


class MinioBlobStore:
    def __init__(self, client: Minio, bucket: str, public_base_url: str):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def ensure_bucket(self):
        if not self.client.bucket_exists(self.bucket):
            logger.info("Creating bucket %s", self.bucket)
            self.client.make_bucket(self.bucket)

    async def save(self, blob: UploadedBlob) -> str:
        name = object_name(blob)
        await run_in_threadpool(
            self.client.put_object,
            self.bucket,
            name,
            io.BytesIO(blob.data),
            length=len(blob.data),
            content_type=blob.content_type or "application/octet-stream",
        )
        return f"{self.public_base_url}/{self.bucket}/{name}"

    async def delete(self, url: str) -> None:
        await run_in_threadpool(self.client.remove_object, self.bucket, url.rsplit("/", 1)[-1])


def build_blob_store(config: Settings) -> BlobStore:
    if config.STORAGE_BACKEND == "minio":
        if not config.MINIO_ENDPOINT:
            raise RuntimeError("STORAGE_BACKEND=minio requires MINIO_ENDPOINT")
        client = Minio(
            config.MINIO_ENDPOINT,
            access_key=config.MINIO_ACCESS_KEY,
            secret_key=config.MINIO_SECRET_KEY,
            secure=config.MINIO_SECURE,
        )
        scheme = "https" if config.MINIO_SECURE else "http"
        return MinioBlobStore(client, config.MINIO_BUCKET, f"{scheme}://{config.MINIO_ENDPOINT}")
    if config.STORAGE_BACKEND == "local":
        return LocalBlobStore(config.UPLOAD_DIR)
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")


@lru_cache
def get_blob_store() -> BlobStore:
    return build_blob_store(settings)
