"""
MinIO Object Storage Client
Document file storage and short-lived access URLs
"""

import asyncio
import io
from datetime import timedelta
from typing import Any, Optional, Tuple

from minio import Minio
from minio.error import MinioException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from docgov.core.config import settings
from docgov.core.exceptions import AppException, TransientException
from docgov.core.logging import get_logger

logger = get_logger(__name__)

# Global MinIO client
_client: Optional[Minio] = None

_STORAGE_ERRORS = (MinioException, Urllib3HTTPError, OSError)


def get_minio_client() -> Minio:
    """Get MinIO client"""
    if _client is None:
        raise TransientException(message="Storage not available", service="storage")
    return _client


def build_storage_path(object_name: str, bucket: Optional[str] = None) -> str:
    """Opaque locator persisted on the document row"""
    return f"{bucket or settings.MINIO_BUCKET}/{object_name}"


def split_storage_path(storage_path: str) -> Tuple[str, str]:
    """Split ``bucket/object/name`` into bucket and object name"""
    bucket, _, object_name = storage_path.partition("/")
    if not bucket or not object_name:
        raise AppException(
            message="Malformed storage path",
            details={"storage_path": storage_path},
        )
    return bucket, object_name


async def _call(operation: str, method: str, **kwargs: Any) -> Any:
    """Run a blocking MinIO call in a worker thread under the storage timeout"""
    client = get_minio_client()
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(getattr(client, method), **kwargs),
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error(f"Storage {operation} timed out after {settings.STORAGE_TIMEOUT_SECONDS}s")
        raise TransientException(service="storage")
    except _STORAGE_ERRORS as e:
        logger.error(f"Storage {operation} failed: {e}")
        raise TransientException(service="storage")


async def init_minio() -> None:
    """Initialize MinIO client and create the documents bucket"""
    global _client

    logger.info(f"Connecting to MinIO at {settings.MINIO_ENDPOINT}")

    endpoint = settings.MINIO_ENDPOINT
    if "://" in endpoint:
        endpoint = endpoint.split("://")[1]

    _client = Minio(
        endpoint,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_USE_SSL,
    )

    await ensure_bucket(settings.MINIO_BUCKET)
    logger.info("MinIO initialized successfully")


async def ensure_bucket(bucket: str) -> None:
    """Create the bucket if it doesn't exist"""
    exists = await _call("bucket_exists", "bucket_exists", bucket_name=bucket)
    if not exists:
        await _call("make_bucket", "make_bucket", bucket_name=bucket)
        logger.info(f"Created bucket: {bucket}")
    else:
        logger.debug(f"Bucket exists: {bucket}")


async def upload_file(
    object_name: str,
    data: bytes,
    content_type: str = "application/octet-stream",
) -> str:
    """Upload a file and return its storage path"""
    bucket = settings.MINIO_BUCKET
    await _call(
        "upload",
        "put_object",
        bucket_name=bucket,
        object_name=object_name,
        data=io.BytesIO(data),
        length=len(data),
        content_type=content_type,
    )
    logger.debug(f"Uploaded file: {bucket}/{object_name}")
    return build_storage_path(object_name, bucket)


async def delete_file(storage_path: str) -> None:
    """Delete a stored file"""
    bucket, object_name = split_storage_path(storage_path)
    await _call("delete", "remove_object", bucket_name=bucket, object_name=object_name)
    logger.debug(f"Deleted file: {storage_path}")


async def get_presigned_url(
    storage_path: str,
    expires: int = 3600,
    as_attachment: bool = False,
    filename: Optional[str] = None,
) -> str:
    """Generate a short-lived presigned GET URL; the storage path itself is never exposed"""
    bucket, object_name = split_storage_path(storage_path)
    disposition = "attachment" if as_attachment else "inline"
    if filename:
        disposition = f'{disposition}; filename="{filename}"'

    return await _call(
        "presign",
        "presigned_get_object",
        bucket_name=bucket,
        object_name=object_name,
        expires=timedelta(seconds=expires),
        response_headers={"response-content-disposition": disposition},
    )


async def check_storage() -> bool:
    """Check the documents bucket is reachable"""
    if _client is None:
        return False
    try:
        return await _call("health", "bucket_exists", bucket_name=settings.MINIO_BUCKET)
    except TransientException:
        return False
