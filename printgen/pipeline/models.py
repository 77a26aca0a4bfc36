"""
Typed contracts shared by the generation pipeline stages.

Jobs, plans and render results are frozen once created; the orchestrator
never mutates them after planning starts.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class TemplateKind(str, Enum):
    DIGITAL = "digital"
    DIGITAL_US = "digital-us"
    SINGLE_SHEET_PRINT = "single-sheet-print"
    MULTI_SHEET_PRINT = "multi-sheet-print"

    @property
    def is_print(self) -> bool:
        return self in (TemplateKind.SINGLE_SHEET_PRINT, TemplateKind.MULTI_SHEET_PRINT)


class PhysicalVariant(str, Enum):
    STANDARD = "standard"
    ECO = "eco"
    DOUBLE_SIDED = "double-sided"


def _new_job_id() -> str:
    return uuid.uuid4().hex


class GenerationJob(BaseModel):
    """
    Job descriptor handed over by the trigger layer.
    """

    template_kind: TemplateKind
    total_items: int
    region: str = "eu"
    output_subdir: str = ""
    physical_variant: PhysicalVariant = PhysicalVariant.STANDARD
    label: str = "document"
    bleed_mm: Optional[float] = None
    job_id: str = Field(default_factory=_new_job_id)

    model_config = {"frozen": True}


class PageLayout(BaseModel):
    items_per_page: int
    pages_per_item: int

    model_config = {"frozen": True}


class ChunkPlan(BaseModel):
    """
    Contiguous item range rendered by one remote invocation.

    `item_end_index` is inclusive; `chunk_index` defines document order.
    """

    chunk_index: int
    item_start_index: int
    item_end_index: int
    page_offset: int = 0
    page_count: int = 0

    model_config = {"frozen": True}

    @property
    def item_count(self) -> int:
        return self.item_end_index - self.item_start_index + 1


class Margins(BaseModel):
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    model_config = {"frozen": True}


class PageDimensions(BaseModel):
    width_mm: float
    height_mm: float
    margins_mm: Margins = Margins()
    paper_format: Optional[str] = None

    model_config = {"frozen": True}


class InlineResult(BaseModel):
    """Render output small enough to travel in the response body."""

    kind: Literal["inline"] = "inline"
    data: bytes

    model_config = {"frozen": True}

    @property
    def size(self) -> int:
        return len(self.data)


class PointerResult(BaseModel):
    """Render output the remote side wrote to durable storage."""

    kind: Literal["pointer"] = "pointer"
    store: str
    key: str
    size: int = 0

    model_config = {"frozen": True}


RenderResult = Union[InlineResult, PointerResult]


class MergeRequest(BaseModel):
    keys: list[str]
    delete_sources_after: bool = True

    def to_payload(self) -> dict:
        return {
            "operation": "merge",
            "keys": list(self.keys),
            "deleteSourcesAfter": self.delete_sources_after,
        }


class MergeResult(BaseModel):
    pointer: PointerResult
    page_count: Optional[int] = None


class FinalArtifact(BaseModel):
    """
    The assembled, post-processed document as written to disk.
    """

    job_id: str
    path: Path
    filename: str
    size_bytes: int
    page_count: int
    chunk_count: int
    width_mm: float
    height_mm: float
    created_at: datetime
