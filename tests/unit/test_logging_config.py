"""Unit tests for structured logging and job-id propagation."""

import asyncio
import json
import logging
import sys

import pytest

from printgen.core.logging_config import (
    JobIdFilter,
    StructuredFormatter,
    get_job_id,
    reset_job_id,
    set_job_id,
)


def make_record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("printgen.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_job_id_defaults_and_resets():
    assert get_job_id() == "-"
    token = set_job_id("job-42")
    assert get_job_id() == "job-42"
    reset_job_id(token)
    assert get_job_id() == "-"


def test_filter_injects_current_job_id():
    token = set_job_id("job-7")
    try:
        record = make_record()
        JobIdFilter().filter(record)
    finally:
        reset_job_id(token)
    assert record.job_id == "job-7"


def test_filter_keeps_explicit_job_id():
    record = make_record(job_id="explicit")
    JobIdFilter().filter(record)
    assert record.job_id == "explicit"


@pytest.mark.asyncio
async def test_job_id_is_isolated_between_tasks():
    async def run(job_id):
        token = set_job_id(job_id)
        try:
            await asyncio.sleep(0)
            return get_job_id()
        finally:
            reset_job_id(token)

    assert await asyncio.gather(run("a"), run("b")) == ["a", "b"]


def test_formatter_emits_known_extras_only():
    record = make_record("Chunk rendered", chunk_index=3, size_bytes=1024, password="x")
    payload = json.loads(StructuredFormatter().format(record))

    assert payload["message"] == "Chunk rendered"
    assert payload["level"] == "INFO"
    assert payload["chunk_index"] == 3
    assert payload["size_bytes"] == 1024
    assert "password" not in payload
    assert payload["timestamp"].endswith("Z")


def test_formatter_includes_exception():
    try:
        raise ValueError("bad page")
    except ValueError:
        record = logging.LogRecord(
            "printgen.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    payload = json.loads(StructuredFormatter().format(record))

    assert payload["exception"]["type"] == "ValueError"
    assert payload["exception"]["message"] == "bad page"
