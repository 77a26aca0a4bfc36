from __future__ import annotations

from prometheus_client import Counter, Histogram

chunks_rendered_total = Counter(
    "printgen_chunks_rendered_total",
    "Chunks rendered by the remote function",
    labelnames=("shape",),
)
render_retries_total = Counter(
    "printgen_render_retries_total",
    "Render attempts that failed and were retried",
)
documents_merged_total = Counter(
    "printgen_documents_merged_total",
    "Remote merge operations completed",
)
jobs_completed_total = Counter("printgen_jobs_completed_total", "Jobs completed successfully")
jobs_failed_total = Counter(
    "printgen_jobs_failed_total",
    "Jobs failed",
    labelnames=("error_code",),
)
cleanup_failures_total = Counter(
    "printgen_cleanup_failures_total",
    "Intermediate artifacts that could not be deleted",
)
job_duration_seconds = Histogram(
    "printgen_job_duration_seconds",
    "End-to-end generation job duration in seconds",
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 900.0),
)
stage_duration_seconds = Histogram(
    "printgen_stage_duration_seconds",
    "Generation stage duration in seconds",
    labelnames=("stage",),
    buckets=(0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
)


def inc_chunk_rendered(shape: str) -> None:
    chunks_rendered_total.labels(shape=shape).inc()


def inc_render_retry() -> None:
    render_retries_total.inc()


def inc_document_merged() -> None:
    documents_merged_total.inc()


def inc_job_completed() -> None:
    jobs_completed_total.inc()


def inc_job_failed(error_code: str) -> None:
    jobs_failed_total.labels(error_code=error_code).inc()


def inc_cleanup_failure() -> None:
    cleanup_failures_total.inc()


def record_job_duration(seconds: float) -> None:
    job_duration_seconds.observe(seconds)


def record_stage_duration(stage: str, seconds: float) -> None:
    stage_duration_seconds.labels(stage=stage).observe(seconds)
