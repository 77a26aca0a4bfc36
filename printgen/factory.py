"""Wire a DocumentGenerator from environment settings."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from printgen.clients.render_client import RenderFunctionClient
from printgen.clients.s3_client import S3ArtifactStore
from printgen.core.logging_config import configure_structured_logging
from printgen.core.settings import (
    get_app_settings,
    get_pipeline_settings,
    get_render_settings,
    get_s3_settings,
)
from printgen.pipeline.orchestrator import DocumentGenerator
from printgen.resilience.retry import RetryConfig, build_backoff

logger = logging.getLogger(__name__)


def configure_logging_from_settings() -> None:
    app_settings = get_app_settings()
    configure_structured_logging(level=app_settings.LOG_LEVEL, json_format=app_settings.LOG_JSON)


def build_store() -> S3ArtifactStore:
    s3_settings = get_s3_settings()
    return S3ArtifactStore(
        endpoint=s3_settings.S3_ENDPOINT,
        access_key=s3_settings.S3_ACCESS_KEY,
        secret_key=s3_settings.S3_SECRET_KEY.get_secret_value(),
        bucket=s3_settings.S3_BUCKET,
        secure=s3_settings.S3_SECURE,
        region=s3_settings.S3_REGION,
    )


def build_render_retry() -> RetryConfig:
    pipeline_settings = get_pipeline_settings()
    return RetryConfig(
        max_attempts=pipeline_settings.RENDER_MAX_ATTEMPTS,
        backoff=build_backoff(
            pipeline_settings.RENDER_BACKOFF_STRATEGY,
            step_seconds=pipeline_settings.RENDER_BACKOFF_SECONDS,
        ),
    )


@asynccontextmanager
async def generator_from_settings(
    store: Optional[S3ArtifactStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[DocumentGenerator]:
    """
    Yield a DocumentGenerator backed by the configured render function and
    bucket. The HTTP client is closed when the context exits.
    """
    render_settings = get_render_settings()
    pipeline_settings = get_pipeline_settings()
    store = store or build_store()

    async with RenderFunctionClient(
        render_url=render_settings.RENDER_FUNCTION_URL,
        merge_url=render_settings.MERGE_FUNCTION_URL,
        default_store=store.bucket,
        timeout=render_settings.RENDER_TIMEOUT_SECONDS,
        verify=render_settings.RENDER_VERIFY_SSL,
        transport=transport,
    ) as client:
        yield DocumentGenerator(
            render=client,
            store=store,
            source_base_url=render_settings.SOURCE_BASE_URL,
            output_dir=pipeline_settings.output_dir,
            max_pages_per_chunk=pipeline_settings.MAX_PAGES_PER_CHUNK,
            max_concurrency=pipeline_settings.MAX_CONCURRENT_CHUNKS,
            render_retry=build_render_retry(),
            job_timeout_seconds=pipeline_settings.JOB_TIMEOUT_SECONDS,
            bleed_mm=pipeline_settings.BLEED_MM,
            compress_output=pipeline_settings.COMPRESS_OUTPUT,
            artifact_prefix=pipeline_settings.ARTIFACT_PREFIX,
        )
