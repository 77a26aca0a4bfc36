"""
Physical post-processing of the assembled PDF.

Operations take and return PDF bytes and touch every page the same way.
Any parse or transform failure is raised as PostProcessingError; these are
never retried because the input will not get better.
"""

from __future__ import annotations

import io
import logging

from pypdf import PdfReader, PdfWriter, Transformation
from pypdf.errors import PyPdfError
from pypdf.generic import RectangleObject

from printgen.core.config import MM_TO_PT
from printgen.core.exceptions import PostProcessingError

logger = logging.getLogger(__name__)


def mm_to_pt(mm: float) -> float:
    return mm * MM_TO_PT


def _open(document: bytes, operation: str) -> PdfWriter:
    if not document:
        raise PostProcessingError(operation, "empty document")
    try:
        writer = PdfWriter(clone_from=io.BytesIO(document))
    except (PyPdfError, ValueError, KeyError, TypeError, OSError) as e:
        raise PostProcessingError(operation, str(e)) from e
    if len(writer.pages) == 0:
        raise PostProcessingError(operation, "document has no pages")
    return writer


def _save(writer: PdfWriter, operation: str) -> bytes:
    buffer = io.BytesIO()
    try:
        writer.write(buffer)
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        raise PostProcessingError(operation, str(e)) from e
    return buffer.getvalue()


def _set_size(page, width: float, height: float) -> None:
    page.mediabox = RectangleObject([0, 0, width, height])
    page.cropbox = RectangleObject([0, 0, width, height])
    page.trimbox = RectangleObject([0, 0, width, height])


def resize_pages(document: bytes, width_mm: float, height_mm: float) -> bytes:
    """
    Scale every page to the target size in millimetres.

    X and Y scale independently; content is stretched when the source
    aspect ratio differs from the target.
    """
    target_w, target_h = mm_to_pt(width_mm), mm_to_pt(height_mm)
    writer = _open(document, "resize")
    try:
        for page in writer.pages:
            width, height = float(page.mediabox.width), float(page.mediabox.height)
            scale_x, scale_y = target_w / width, target_h / height
            page.add_transformation(Transformation().scale(scale_x, scale_y))
            _set_size(page, target_w, target_h)
    except (PyPdfError, ValueError, KeyError, TypeError, ZeroDivisionError) as e:
        raise PostProcessingError("resize", str(e)) from e

    logger.debug(
        f"Resized {len(writer.pages)} pages to {width_mm}x{height_mm}mm",
        extra={"page_count": len(writer.pages)},
    )
    return _save(writer, "resize")


def bleed_transformation(width: float, height: float, bleed_pt: float) -> Transformation:
    """Scale content to the bled page size, then center it on that page."""
    new_width, new_height = width + 2 * bleed_pt, height + 2 * bleed_pt
    scale_x, scale_y = new_width / width, new_height / height
    scaled_width, scaled_height = width * scale_x, height * scale_y
    return (
        Transformation()
        .scale(scale_x, scale_y)
        .translate((new_width - scaled_width) / 2, (new_height - scaled_height) / 2)
    )


def add_bleed(document: bytes, bleed_mm: float) -> bytes:
    """
    Extend every page by `bleed_mm` on each side.

    Content is over-scaled to the new size and re-centered, so the printed
    image runs past the trim line instead of gaining a blank border.
    """
    bleed = mm_to_pt(bleed_mm)
    writer = _open(document, "bleed")
    try:
        for page in writer.pages:
            width, height = float(page.mediabox.width), float(page.mediabox.height)
            page.add_transformation(bleed_transformation(width, height, bleed))
            _set_size(page, width + 2 * bleed, height + 2 * bleed)
    except (PyPdfError, ValueError, KeyError, TypeError, ZeroDivisionError) as e:
        raise PostProcessingError("bleed", str(e)) from e

    logger.debug(
        f"Added {bleed_mm}mm bleed to {len(writer.pages)} pages",
        extra={"page_count": len(writer.pages)},
    )
    return _save(writer, "bleed")


def compress(document: bytes) -> bytes:
    """Losslessly compress content streams and drop duplicate objects."""
    writer = _open(document, "compress")
    try:
        for page in writer.pages:
            page.compress_content_streams()
        writer.compress_identical_objects()
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        raise PostProcessingError("compress", str(e)) from e
    return _save(writer, "compress")


def count_pages(document: bytes) -> int:
    try:
        return len(PdfReader(io.BytesIO(document)).pages)
    except (PyPdfError, ValueError, KeyError, TypeError, OSError) as e:
        raise PostProcessingError("count_pages", str(e)) from e


def page_sizes_mm(document: bytes) -> list[tuple[float, float]]:
    """Width and height of every page in millimetres."""
    try:
        reader = PdfReader(io.BytesIO(document))
        return [
            (float(p.mediabox.width) / MM_TO_PT, float(p.mediabox.height) / MM_TO_PT)
            for p in reader.pages
        ]
    except (PyPdfError, ValueError, KeyError, TypeError, OSError) as e:
        raise PostProcessingError("page_sizes", str(e)) from e
