"""
Résumé blobs in S3-compatible storage (AWS S3 or MinIO).

boto3 is blocking, so every client call is pushed to a worker thread inside
the retried operation; retries never block the event loop.
"""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ats.config import Settings
from ats.core.errors import BlobNotFoundError, InfrastructureError
from ats.core.retry import RetryError, RetryPolicy, execute_with_retry

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def get_s3_client(settings: Settings):
    config = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"},
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url or None,
        region_name=settings.s3_region,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=config,
    )


def _is_not_found(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


def _is_transient(exc: BaseException) -> bool:
    if _is_not_found(exc):
        return False
    return isinstance(exc, (ClientError, BotoCoreError, OSError))


@dataclass(slots=True)
class StoredBlob:
    content_type: str
    stream: io.BytesIO

    def read(self) -> bytes:
        return self.stream.getvalue()


class BlobStoreGateway:
    def __init__(
        self,
        client: Any,
        bucket: str,
        policy: RetryPolicy,
        *,
        app_env: str = "development",
        extension: str = ".pdf",
        content_type: str = PDF_CONTENT_TYPE,
    ):
        self._client = client
        self.bucket = bucket
        self.policy = policy
        self.app_env = app_env
        self.extension = extension
        self.content_type = content_type

    async def _call(self, description: str, fn, **kwargs: Any) -> Any:
        async def _attempt() -> Any:
            return await asyncio.to_thread(fn, **kwargs)

        try:
            return await execute_with_retry(_attempt, self.policy, retry_if=_is_transient, description=description)
        except (RetryError, ClientError, BotoCoreError, OSError) as e:
            if _is_not_found(e):
                raise BlobNotFoundError(kwargs.get("Key", "")) from e
            logger.exception("%s failed (bucket=%s)", description, self.bucket)
            raise InfrastructureError() from e

    async def ensure_bucket(self) -> None:
        def _create_if_missing() -> None:
            try:
                self._client.head_bucket(Bucket=self.bucket)
            except ClientError:
                self._client.create_bucket(Bucket=self.bucket)

        await self._call("Ensure bucket", _create_if_missing)

    async def put(self, data: bytes) -> str:
        """Store ``data`` under a new UUID-based key and return the key."""
        key = f"{uuid.uuid4()}{self.extension}"
        await self._call(
            "Upload object",
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=self.content_type,
            ContentDisposition="inline",
            ACL="private",
        )
        return key

    async def get(self, key: str) -> StoredBlob:
        """Download the object at ``key``; raises BlobNotFoundError if it does not exist."""

        def _download(**kwargs: Any) -> StoredBlob:
            response = self._client.get_object(**kwargs)
            body = response["Body"]
            try:
                data = body.read()
            finally:
                body.close()
            return StoredBlob(
                content_type=response.get("ContentType") or self.content_type,
                stream=io.BytesIO(data),
            )

        return await self._call("Download object", _download, Bucket=self.bucket, Key=key)

    async def delete(self, key: str) -> None:
        """Delete the object at ``key``. S3 does not report missing keys here; do not rely on either outcome."""
        await self._call("Delete object", self._client.delete_object, Bucket=self.bucket, Key=key)

    async def empty_all(self) -> None:
        """
        Delete every object in the bucket. Test environment only.

        Lists once and batch-deletes what that listing returned, so a bucket
        holding more keys than one listing page (1000) is only partly emptied.
        Not safe to run concurrently against the same bucket.
        """
        if self.app_env != "test":
            raise RuntimeError("Cannot empty bucket outside of testing")

        def _empty() -> None:
            listed = self._client.list_objects_v2(Bucket=self.bucket)
            contents = listed.get("Contents") or []
            if not contents:
                return
            self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": obj["Key"]} for obj in contents]},
            )

        await self._call("Empty bucket", _empty)

    def close(self) -> None:
        self._client.close()
