import asyncio
import logging
from io import BytesIO

from minio import Minio
from minio.error import S3Error

from docsign.common.errors import CollaboratorFailure, NotFound
from docsign.config import settings

logger = logging.getLogger(__name__)

_minio_client = None


def get_minio_client() -> Minio:
    global _minio_client
    if _minio_client is None:
        _minio_client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_root_user,
            secret_key=settings.minio_root_password,
            secure=settings.minio_use_ssl,
        )
        if not _minio_client.bucket_exists(settings.minio_bucket):
            _minio_client.make_bucket(settings.minio_bucket)
    return _minio_client


def _put(key: str, data: bytes, content_type: str) -> None:
    client = get_minio_client()
    client.put_object(settings.minio_bucket, key, BytesIO(data), length=len(data), content_type=content_type)


def _get(key: str) -> bytes:
    client = get_minio_client()
    response = client.get_object(settings.minio_bucket, key)
    try:
        return response.read()
    finally:
        response.close()
        response.release_conn()


def _remove(key: str) -> None:
    get_minio_client().remove_object(settings.minio_bucket, key)


async def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
    try:
        await asyncio.to_thread(_put, key, data, content_type)
    except Exception as exc:
        logger.exception("Storage write failed for %s", key)
        raise CollaboratorFailure("Document storage is unavailable") from exc


async def get_bytes(key: str) -> bytes:
    try:
        return await asyncio.to_thread(_get, key)
    except S3Error as exc:
        if exc.code == "NoSuchKey":
            raise NotFound("Stored file not found") from exc
        logger.exception("Storage read failed for %s", key)
        raise CollaboratorFailure("Document storage is unavailable") from exc
    except Exception as exc:
        logger.exception("Storage read failed for %s", key)
        raise CollaboratorFailure("Document storage is unavailable") from exc


async def delete_object(key: str) -> None:
    try:
        await asyncio.to_thread(_remove, key)
    except Exception as exc:
        logger.exception("Storage delete failed for %s", key)
        raise CollaboratorFailure("Document storage is unavailable") from exc
