"""
Combine ordered chunk results into one document.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from printgen.core import metrics
from printgen.core.config import ARTIFACT_KEY_TEMPLATE
from printgen.core.exceptions import ClientError, MergeError
from printgen.pipeline.models import (
    InlineResult,
    MergeRequest,
    MergeResult,
    PointerResult,
    RenderResult,
)
from printgen.pipeline.ports import ArtifactStorePort, RenderPort
from printgen.resilience.retry import RetryConfig, async_retry_with_backoff

logger = logging.getLogger(__name__)


def artifact_key(prefix: str, job_id: str, name: str) -> str:
    """Job-scoped key with a random suffix so retries never collide."""
    return ARTIFACT_KEY_TEMPLATE.format(
        prefix=prefix.strip("/"), job_id=job_id, name=name, suffix=secrets.token_hex(4)
    )


class Merger:
    """Merge chunk results through the remote merge operation.

    Every pointer this class creates or receives is appended to `produced`
    before it is used, so the caller can delete it on any exit path.

    Args:
        render: Port exposing the remote merge call
        store: Artifact store used to upload inline results and download output
        job_id: Owning job, used in artifact keys
        key_prefix: Common prefix for this service's artifacts
        produced: Caller-owned accumulator of intermediate artifacts
        retry_config: Retry policy for the merge call
    """

    def __init__(
        self,
        render: RenderPort,
        store: ArtifactStorePort,
        job_id: str,
        key_prefix: str,
        produced: list[RenderResult],
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.render = render
        self.store = store
        self.job_id = job_id
        self.key_prefix = key_prefix
        self.produced = produced
        self.retry_config = retry_config or RetryConfig(max_attempts=1)
        self.last_merge: Optional[MergeResult] = None

    async def _materialize(self, result: RenderResult) -> bytes:
        if isinstance(result, InlineResult):
            return result.data
        return await self.store.get_bytes(result)

    async def _to_pointer(self, index: int, result: RenderResult) -> PointerResult:
        if isinstance(result, PointerResult):
            return result
        key = artifact_key(self.key_prefix, self.job_id, f"chunk-{index}")
        pointer = await self.store.put_bytes(key, result.data)
        self.produced.append(pointer)
        return pointer

    async def merge(self, results: list[RenderResult]) -> bytes:
        """
        Return the combined document for results given in chunk order.

        Raises:
          MergeError: The merge call failed or its output could not be fetched.
        """
        if not results:
            raise MergeError("no chunk results to merge")

        if len(results) == 1:
            logger.info("Single chunk, no merge needed")
            return await self._materialize(results[0])

        pointers = [await self._to_pointer(i, r) for i, r in enumerate(results)]
        request = MergeRequest(keys=[p.key for p in pointers], delete_sources_after=True)

        logger.info(
            f"Merging {len(pointers)} chunk artifacts",
            extra={"chunk_count": len(pointers)},
        )
        try:
            merged = await async_retry_with_backoff(
                self.render.merge, self.retry_config, request
            )
        except MergeError:
            raise
        except ClientError as e:
            raise MergeError(e.message, key_count=len(pointers)) from e
        except Exception as e:
            raise MergeError(str(e), key_count=len(pointers)) from e

        self.produced.append(merged.pointer)
        self.last_merge = merged

        try:
            document = await self.store.get_bytes(merged.pointer)
        except Exception as e:
            raise MergeError(f"merged document could not be downloaded: {e}") from e

        metrics.inc_document_merged()
        logger.info(
            f"Merged document retrieved ({len(document)} bytes, "
            f"{merged.page_count if merged.page_count is not None else '?'} pages)",
            extra={"size_bytes": len(document), "page_count": merged.page_count},
        )
        return document
