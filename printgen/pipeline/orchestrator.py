"""
End-to-end generation of one document: plan, render, merge, post-process,
write, clean up, then signal completion.

The final file appears on disk only when the whole job succeeds; every
intermediate artifact is deleted on every exit path.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Awaitable, Callable, Optional, Union

from printgen.core import metrics
from printgen.core.config import (
    DEFAULT_BLEED_MM,
    JOB_TIMEOUT_SECONDS,
    MAX_CONCURRENT_CHUNKS,
    MAX_PAGES_PER_CHUNK,
)
from printgen.core.exceptions import BaseError, InvalidJobError, JobTimeoutError
from printgen.core.logging_config import reset_job_id, set_job_id
from printgen.pipeline import postprocess
from printgen.pipeline.fanout import FanOutCoordinator
from printgen.pipeline.invoker import RenderInvoker
from printgen.pipeline.merger import Merger
from printgen.pipeline.models import ChunkPlan, FinalArtifact, GenerationJob, RenderResult
from printgen.pipeline.planner import plan_job, planned_pages
from printgen.pipeline.ports import ArtifactStorePort, RenderPort
from printgen.pipeline.utils.io_utils import build_output_filename, write_bytes_atomic
from printgen.pipeline.utils.timing import StageTimers
from printgen.resilience.retry import RetryConfig

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[FinalArtifact], Union[None, Awaitable[None]]]


def _resolve_subdir(output_subdir: str) -> PurePosixPath:
    subdir = PurePosixPath(output_subdir.replace("\\", "/")) if output_subdir else PurePosixPath()
    if subdir.is_absolute() or ".." in subdir.parts:
        raise InvalidJobError(
            f"output_subdir must be a relative path inside the output directory: {output_subdir}",
            "output_subdir",
        )
    return subdir


class DocumentGenerator:
    """
    Run generation jobs end to end: plan, render, merge, post-process,
    write, clean up, then signal completion.

    Collaborators are injected at construction time; see
    `printgen.factory` for wiring from settings.
    """

    def __init__(
        self,
        render: RenderPort,
        store: ArtifactStorePort,
        *,
        source_base_url: str,
        output_dir: Path,
        max_pages_per_chunk: int = MAX_PAGES_PER_CHUNK,
        max_concurrency: int = MAX_CONCURRENT_CHUNKS,
        render_retry: Optional[RetryConfig] = None,
        merge_retry: Optional[RetryConfig] = None,
        job_timeout_seconds: Optional[float] = JOB_TIMEOUT_SECONDS,
        bleed_mm: float = DEFAULT_BLEED_MM,
        compress_output: bool = True,
        artifact_prefix: str = "printgen",
    ) -> None:
        self.render = render
        self.store = store
        self.source_base_url = source_base_url
        self.output_dir = Path(output_dir)
        self.max_pages_per_chunk = max_pages_per_chunk
        self.max_concurrency = max_concurrency
        self.render_retry = render_retry
        self.merge_retry = merge_retry
        self.job_timeout_seconds = job_timeout_seconds
        self.bleed_mm = bleed_mm
        self.compress_output = compress_output
        self.artifact_prefix = artifact_prefix

    def _bleed_for(self, job: GenerationJob) -> float:
        if job.bleed_mm is not None:
            return job.bleed_mm
        return self.bleed_mm if job.template_kind.is_print else 0.0

    def _post_process(self, document: bytes, width_mm: float, height_mm: float, bleed_mm: float) -> bytes:
        document = postprocess.resize_pages(document, width_mm, height_mm)
        if bleed_mm > 0:
            document = postprocess.add_bleed(document, bleed_mm)
        if self.compress_output:
            document = postprocess.compress(document)
        return document

    async def _write_final(self, final_path: Path, document: bytes) -> None:
        """
        Write the final document in a worker thread.

        A thread cannot be interrupted, so when the job is cancelled or times
        out mid-write we wait for the thread to finish and then remove
        whatever it put in place.
        """
        loop = asyncio.get_running_loop()
        pending = loop.run_in_executor(None, write_bytes_atomic, final_path, document)
        try:
            await asyncio.shield(pending)
        except asyncio.CancelledError:
            try:
                await pending
            except Exception as e:
                logger.warning(f"Final write failed after cancellation: {e}")
            final_path.unlink(missing_ok=True)
            logger.warning(f"Discarded final document after cancellation: {final_path}")
            raise

    async def _run(
        self,
        job: GenerationJob,
        chunks: list[ChunkPlan],
        subdir: PurePosixPath,
        produced: list[RenderResult],
        timers: StageTimers,
    ) -> FinalArtifact:
        loop = asyncio.get_running_loop()

        invoker = RenderInvoker(job, self.render, self.source_base_url, self.render_retry)
        coordinator = FanOutCoordinator(invoker.render_chunk, self.max_concurrency, produced)
        with timers.timer("render"):
            results = await coordinator.run(chunks)

        merger = Merger(
            self.render, self.store, job.job_id, self.artifact_prefix, produced, self.merge_retry
        )
        with timers.timer("merge"):
            document = await merger.merge(results)

        dims = invoker.dimensions
        bleed_mm = self._bleed_for(job)
        with timers.timer("postprocess"):
            document = await loop.run_in_executor(
                None, self._post_process, document, dims.width_mm, dims.height_mm, bleed_mm
            )
            page_count = await loop.run_in_executor(None, postprocess.count_pages, document)

        expected_pages = planned_pages(job)
        if page_count != expected_pages:
            logger.warning(
                f"Final document has {page_count} pages, planned {expected_pages}",
                extra={"page_count": page_count},
            )

        created_at = datetime.now(timezone.utc)
        filename = build_output_filename(job, created_at)
        final_path = self.output_dir / Path(*subdir.parts) / filename
        with timers.timer("write"):
            await self._write_final(final_path, document)

        return FinalArtifact(
            job_id=job.job_id,
            path=final_path,
            filename=filename,
            size_bytes=len(document),
            page_count=page_count,
            chunk_count=len(chunks),
            width_mm=dims.width_mm + 2 * bleed_mm,
            height_mm=dims.height_mm + 2 * bleed_mm,
            created_at=created_at,
        )

    async def _execute(self, job: GenerationJob, timers: StageTimers) -> FinalArtifact:
        subdir = _resolve_subdir(job.output_subdir)
        with timers.timer("plan"):
            chunks = plan_job(job, self.max_pages_per_chunk)
        logger.info(
            f"Generating {job.template_kind.value} document: {job.total_items} items "
            f"in {len(chunks)} chunks",
            extra={"chunk_count": len(chunks)},
        )

        produced: list[RenderResult] = []
        try:
            if self.job_timeout_seconds:
                try:
                    return await asyncio.wait_for(
                        self._run(job, chunks, subdir, produced, timers),
                        timeout=self.job_timeout_seconds,
                    )
                except asyncio.TimeoutError as e:
                    raise JobTimeoutError(job.job_id, self.job_timeout_seconds) from e
            return await self._run(job, chunks, subdir, produced, timers)
        finally:
            pointers = [r for r in produced if r.kind == "pointer"]
            if pointers:
                with timers.timer("cleanup"):
                    failures = await self.store.cleanup_keys_best_effort(pointers)
                logger.info(
                    f"Cleaned up {len(pointers) - failures}/{len(pointers)} intermediate artifacts"
                )

    async def generate(
        self, job: GenerationJob, on_complete: Optional[CompletionCallback] = None
    ) -> FinalArtifact:
        """
        Generate the final document for a job.

        The job is all-or-nothing: on any failure no output file is left
        behind and every intermediate artifact produced so far is deleted
        before the error propagates.

        Args:
          job: Job descriptor from the trigger layer.
          on_complete: Called (or awaited) with the FinalArtifact once the
            file is written and intermediates are cleaned up.

        Raises:
          InvalidJobError / UnsupportedTemplateError: The job cannot be planned.
          ChunkRenderError, MergeError, PostProcessingError, JobTimeoutError:
            The job failed after starting.
        """
        token = set_job_id(job.job_id)
        timers = StageTimers()
        started = time.perf_counter()
        try:
            artifact = await self._execute(job, timers)
        except BaseError as e:
            metrics.inc_job_failed(e.error_code)
            logger.error(
                f"Job failed: {e.message}",
                extra={"error_code": e.error_code, "duration_ms": timers.as_millis()},
            )
            raise
        except Exception as e:
            metrics.inc_job_failed("UNEXPECTED")
            logger.error(f"Job failed unexpectedly: {e}", exc_info=True)
            raise
        finally:
            reset_job_id(token)

        elapsed = time.perf_counter() - started
        metrics.inc_job_completed()
        metrics.record_job_duration(elapsed)
        logger.info(
            f"Document written: {artifact.path} ({artifact.page_count} pages, "
            f"{artifact.size_bytes} bytes) in {elapsed:.2f}s",
            extra={
                "job_id": job.job_id,
                "page_count": artifact.page_count,
                "size_bytes": artifact.size_bytes,
                "duration_ms": timers.as_millis(),
            },
        )

        if on_complete is not None:
            outcome: Any = on_complete(artifact)
            if inspect.isawaitable(outcome):
                await outcome
        return artifact
