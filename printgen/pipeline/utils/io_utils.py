"""
File-system and naming helpers for final artifacts.

Provides output filename construction, parent-directory creation and an
all-or-nothing write for the final document.
"""

from __future__ import annotations

import os
import re
from datetime import datetime
from pathlib import Path

from printgen.core.config import OUTPUT_TIMESTAMP_FORMAT, TEMP_FILE_TEMPLATE
from printgen.pipeline.models import GenerationJob, PhysicalVariant

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def ensure_parent(path: str | Path) -> None:
    """
    Ensure that the parent directory for the given path exists.

    Args:
      path: Target file path whose parent should be created.
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def sanitize_label(label: str) -> str:
    """
    Make a job label safe for use in a filename.

    Spaces become underscores, anything outside `[A-Za-z0-9._-]` is dropped,
    and the result is lower-cased. Empty input yields "document".
    """
    cleaned = _UNSAFE_CHARS.sub("", label.strip().replace(" ", "_")).lower()
    cleaned = cleaned.strip("._")
    return cleaned or "document"


def output_prefix(job: GenerationJob) -> str:
    prefix = "printer" if job.template_kind.is_print else "digital"
    if job.physical_variant is PhysicalVariant.ECO:
        prefix += "_eco"
    elif job.physical_variant is PhysicalVariant.DOUBLE_SIDED:
        prefix += "_double"
    return prefix


def build_output_filename(job: GenerationJob, generated_at: datetime) -> str:
    """
    Build `{prefix}_{timestamp}_{label}.pdf` for a job.

    Args:
      job: The job being written.
      generated_at: Generation time; microsecond precision avoids collisions.

    Returns:
      The filename (no directory component).
    """
    label = sanitize_label(job.label)
    if label.endswith(".pdf"):
        label = label[: -len(".pdf")]
    timestamp = generated_at.strftime(OUTPUT_TIMESTAMP_FORMAT)
    return f"{output_prefix(job)}_{timestamp}_{label}.pdf"


def temp_path_for(final_path: Path, offset: int = 0) -> Path:
    return final_path.with_name(
        TEMP_FILE_TEMPLATE.format(offset=offset, filename=final_path.name)
    )


def write_bytes_atomic(path: str | Path, data: bytes) -> Path:
    """
    Write bytes to `path` so that readers see either nothing or the whole file.

    Data goes to a `temp_0_<name>` sibling first and is renamed into place;
    the temporary file is removed if the write fails.

    Returns:
      The destination path as a `Path` instance.
    """
    final_path = Path(path)
    ensure_parent(final_path)
    temp_path = temp_path_for(final_path)
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, final_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return final_path
