"""MinIO S3 client for intermediate render artifacts."""
import asyncio
import io
import logging
import ssl
from typing import Any, Iterable, Optional, Union

import urllib3
from minio import Minio
from minio.error import S3Error

from printgen.core import metrics
from printgen.core.exceptions import ArtifactStoreError
from printgen.pipeline.models import PointerResult

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "NoSuchObject"}


class S3ArtifactStore:
    """Async facade over MinIO for the job's intermediate documents.

    Blocking MinIO calls run in the default executor so they never stall
    the event loop driving the chunk fan-out.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = True,
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the artifact store.

        Args:
            endpoint: S3 endpoint (e.g., "s3.example.com:9443")
            access_key: S3 access key
            secret_key: S3 secret key
            bucket: Bucket holding intermediate artifacts
            secure: Use HTTPS (default: True)
            region: Bucket region
            client: Pre-built Minio-compatible client (tests inject a fake)
        """
        self._bucket = bucket
        self.endpoint = endpoint

        if client is None:
            http_client = urllib3.PoolManager(cert_reqs=ssl.CERT_REQUIRED if secure else ssl.CERT_NONE)
            client = Minio(
                endpoint,
                access_key=access_key,
                secret_key=secret_key,
                secure=secure,
                region=region,
                http_client=http_client,
            )
        self.client = client

        logger.info(f"S3ArtifactStore initialized: endpoint={endpoint}, bucket={bucket}")

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))

    def _put(self, key: str, data: bytes) -> None:
        self.client.put_object(
            self._bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type="application/pdf",
        )

    def _get(self, bucket: str, key: str) -> bytes:
        response = self.client.get_object(bucket, key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    async def put_bytes(self, key: str, data: bytes) -> PointerResult:
        """Upload bytes under `key` and return a pointer to them."""
        try:
            await self._run(self._put, key, data)
        except S3Error as e:
            logger.error(f"S3 error uploading {key}: {e}", extra={"key": key})
            raise ArtifactStoreError("put", key, str(e)) from e
        logger.debug(f"Uploaded artifact {key}", extra={"key": key, "size_bytes": len(data)})
        return PointerResult(store=self._bucket, key=key, size=len(data))

    async def get_bytes(self, pointer: PointerResult) -> bytes:
        """Download the object a pointer refers to."""
        try:
            data = await self._run(self._get, pointer.store or self._bucket, pointer.key)
        except S3Error as e:
            logger.error(f"S3 error downloading {pointer.key}: {e}", extra={"key": pointer.key})
            raise ArtifactStoreError("get", pointer.key, str(e)) from e
        logger.debug(
            f"Downloaded artifact {pointer.key}",
            extra={"key": pointer.key, "size_bytes": len(data)},
        )
        return data

    async def delete(self, target: Union[PointerResult, str]) -> None:
        """Delete one artifact. A key that no longer exists is not an error."""
        if isinstance(target, PointerResult):
            bucket, key = target.store or self._bucket, target.key
        else:
            bucket, key = self._bucket, target
        try:
            await self._run(self.client.remove_object, bucket, key)
        except S3Error as e:
            if e.code in _MISSING_KEY_CODES:
                return
            raise ArtifactStoreError("delete", key, str(e)) from e

    async def cleanup_keys_best_effort(
        self, targets: Iterable[Union[PointerResult, str]]
    ) -> int:
        """Delete every listed artifact, best effort.

        Failures are logged as warnings, counted, and never raised; a failed
        delete is not retried.

        Returns:
            Number of artifacts that could not be deleted.
        """
        failures = 0
        seen: set[tuple[str, str]] = set()
        for target in targets:
            if isinstance(target, PointerResult):
                ident = (target.store or self._bucket, target.key)
            else:
                ident = (self._bucket, target)
            if ident in seen:
                continue
            seen.add(ident)
            try:
                await self.delete(target)
                logger.debug(f"Deleted intermediate artifact: {ident[1]}", extra={"key": ident[1]})
            except Exception as e:
                failures += 1
                metrics.inc_cleanup_failure()
                logger.warning(
                    f"Failed to delete intermediate artifact {ident[1]}: {e}",
                    extra={"key": ident[1]},
                )
        return failures
