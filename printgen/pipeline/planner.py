"""
Split a job's items into chunks bounded by a page ceiling.

Item and page indices relate through the template layout:
`items_per_page` items share one page group of `pages_per_item` pages
(a digital sheet, or a card's front and back).
"""

from __future__ import annotations

import logging
import math
from typing import Union

from printgen.core.config import (
    DIGITAL_ITEMS_PER_PAGE,
    DIGITAL_PAGES_PER_ITEM,
    MAX_PAGES_PER_CHUNK,
    MULTI_SHEET_ITEMS_PER_PAGE,
    MULTI_SHEET_PAGES_PER_ITEM,
    SINGLE_SHEET_ITEMS_PER_PAGE,
    SINGLE_SHEET_PAGES_PER_ITEM,
)
from printgen.core.exceptions import InvalidJobError
from printgen.pipeline.dimensions import resolve_template_kind
from printgen.pipeline.models import ChunkPlan, GenerationJob, PageLayout, TemplateKind

logger = logging.getLogger(__name__)

_LAYOUTS = {
    TemplateKind.DIGITAL: PageLayout(
        items_per_page=DIGITAL_ITEMS_PER_PAGE, pages_per_item=DIGITAL_PAGES_PER_ITEM
    ),
    TemplateKind.DIGITAL_US: PageLayout(
        items_per_page=DIGITAL_ITEMS_PER_PAGE, pages_per_item=DIGITAL_PAGES_PER_ITEM
    ),
    TemplateKind.SINGLE_SHEET_PRINT: PageLayout(
        items_per_page=SINGLE_SHEET_ITEMS_PER_PAGE, pages_per_item=SINGLE_SHEET_PAGES_PER_ITEM
    ),
    TemplateKind.MULTI_SHEET_PRINT: PageLayout(
        items_per_page=MULTI_SHEET_ITEMS_PER_PAGE, pages_per_item=MULTI_SHEET_PAGES_PER_ITEM
    ),
}


def layout_for(template_kind: Union[TemplateKind, str]) -> PageLayout:
    return _LAYOUTS[resolve_template_kind(template_kind)]


def total_pages_for(total_items: int, items_per_page: int, pages_per_item: int) -> int:
    return math.ceil(total_items / items_per_page) * pages_per_item


def _validate(
    total_items: int, items_per_page: int, pages_per_item: int, max_pages_per_chunk: int
) -> None:
    if total_items <= 0:
        raise InvalidJobError(f"total_items must be positive, got {total_items}", "total_items")
    for name, value in (
        ("items_per_page", items_per_page),
        ("pages_per_item", pages_per_item),
        ("max_pages_per_chunk", max_pages_per_chunk),
    ):
        if value <= 0:
            raise InvalidJobError(f"{name} must be positive, got {value}", name)
    if max_pages_per_chunk % pages_per_item:
        raise InvalidJobError(
            f"max_pages_per_chunk ({max_pages_per_chunk}) must be a multiple of "
            f"pages_per_item ({pages_per_item})",
            "max_pages_per_chunk",
        )


def plan_chunks(
    total_items: int,
    items_per_page: int,
    pages_per_item: int,
    max_pages_per_chunk: int = MAX_PAGES_PER_CHUNK,
) -> list[ChunkPlan]:
    """
    Compute chunk item ranges covering `[0, total_items)` exactly.

    Chunk boundaries sit on page offsets `0, max, 2*max, ...`; each offset is
    converted back to the first item of its page group. The last chunk is
    clamped to `total_items - 1`.

    Raises:
      InvalidJobError: On non-positive inputs or a page ceiling that would
        split one item's pages across chunks.
    """
    _validate(total_items, items_per_page, pages_per_item, max_pages_per_chunk)

    total_pages = total_pages_for(total_items, items_per_page, pages_per_item)
    offsets = list(range(0, total_pages, max_pages_per_chunk))

    def item_at(page_offset: int) -> int:
        return (page_offset // pages_per_item) * items_per_page

    chunks: list[ChunkPlan] = []
    for index, offset in enumerate(offsets):
        start = item_at(offset)
        is_last = index == len(offsets) - 1
        end = total_items - 1 if is_last else item_at(offsets[index + 1]) - 1
        page_count = min(max_pages_per_chunk, total_pages - offset)
        chunks.append(
            ChunkPlan(
                chunk_index=index,
                item_start_index=start,
                item_end_index=end,
                page_offset=offset,
                page_count=page_count,
            )
        )

    logger.debug(
        f"Planned {len(chunks)} chunks for {total_items} items ({total_pages} pages)",
        extra={"chunk_count": len(chunks), "page_count": total_pages},
    )
    return chunks


def plan_job(job: GenerationJob, max_pages_per_chunk: int = MAX_PAGES_PER_CHUNK) -> list[ChunkPlan]:
    layout = layout_for(job.template_kind)
    return plan_chunks(
        job.total_items, layout.items_per_page, layout.pages_per_item, max_pages_per_chunk
    )


def planned_pages(job: GenerationJob) -> int:
    layout = layout_for(job.template_kind)
    return total_pages_for(job.total_items, layout.items_per_page, layout.pages_per_item)
