"""
Render one chunk through the remote render function with bounded retry.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from printgen.core import metrics
from printgen.core.config import RENDER_MAX_ATTEMPTS
from printgen.core.exceptions import ChunkRenderError, ClientError
from printgen.pipeline.dimensions import dimensions_for, render_options
from printgen.pipeline.models import (
    ChunkPlan,
    GenerationJob,
    InlineResult,
    PhysicalVariant,
    RenderResult,
)
from printgen.pipeline.ports import RenderPort
from printgen.resilience.retry import LinearBackoff, RetryConfig, async_retry_with_backoff

logger = logging.getLogger(__name__)


def build_source_url(base_url: str, job: GenerationJob, chunk: ChunkPlan) -> str:
    """Source page for a chunk; the item range stop is exclusive."""
    path = (
        f"{base_url.rstrip('/')}/{job.template_kind.value}"
        f"/{chunk.item_start_index}/{chunk.item_end_index + 1}"
    )
    query = {"region": job.region}
    if job.physical_variant is PhysicalVariant.ECO:
        query["eco"] = "1"
    if job.physical_variant is PhysicalVariant.DOUBLE_SIDED:
        query["double_sided"] = "1"
    if job.output_subdir:
        query["subdir"] = job.output_subdir
    return f"{path}?{urlencode(query)}"


class RenderInvoker:
    """Builds render requests for one job and invokes them with retry.

    Args:
        job: The job whose chunks are rendered
        render: Remote render port
        source_base_url: Base of the templated source pages
        retry_config: Retry policy; defaults to 3 attempts, linear 1s steps
    """

    def __init__(
        self,
        job: GenerationJob,
        render: RenderPort,
        source_base_url: str,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.job = job
        self.render = render
        self.source_base_url = source_base_url
        self.retry_config = retry_config or RetryConfig(
            max_attempts=RENDER_MAX_ATTEMPTS, backoff=LinearBackoff(step_seconds=1.0)
        )
        self.dimensions = dimensions_for(job.template_kind, job.region)
        self.options = render_options(self.dimensions)

    async def render_chunk(self, chunk: ChunkPlan, options: dict | None = None) -> RenderResult:
        """
        Render one chunk, retrying transient failures.

        Raises:
          ClientError: The remote function rejected the request as bad input.
          ChunkRenderError: Retries were exhausted.
        """
        url = build_source_url(self.source_base_url, self.job, chunk)
        logger.info(
            f"Rendering chunk {chunk.chunk_index}: items "
            f"{chunk.item_start_index}-{chunk.item_end_index} from {url}",
            extra={"chunk_index": chunk.chunk_index},
        )

        def _on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            metrics.inc_render_retry()

        try:
            result = await async_retry_with_backoff(
                self.render.render,
                self.retry_config,
                url,
                options or self.options,
                on_retry=_on_retry,
            )
        except ClientError:
            raise
        except Exception as e:
            raise ChunkRenderError(
                chunk.chunk_index, self.retry_config.max_attempts, str(e)
            ) from e

        shape = "inline" if isinstance(result, InlineResult) else "pointer"
        metrics.inc_chunk_rendered(shape)
        logger.info(
            f"Chunk {chunk.chunk_index} rendered ({shape}, {result.size} bytes)",
            extra={"chunk_index": chunk.chunk_index, "size_bytes": result.size},
        )
        return result
