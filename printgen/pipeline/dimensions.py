"""
Physical page size per template kind and region.
"""

from __future__ import annotations

from typing import Union

from printgen.core.config import (
    A4_HEIGHT_MM,
    A4_WIDTH_MM,
    CARD_HEIGHT_MM,
    CARD_WIDTH_MM,
    LETTER_HEIGHT_MM,
    LETTER_WIDTH_MM,
    US_REGION_FLAGS,
)
from printgen.core.exceptions import UnsupportedTemplateError
from printgen.pipeline.models import Margins, PageDimensions, TemplateKind

_A4 = PageDimensions(width_mm=A4_WIDTH_MM, height_mm=A4_HEIGHT_MM, paper_format="A4")
_LETTER = PageDimensions(
    width_mm=LETTER_WIDTH_MM, height_mm=LETTER_HEIGHT_MM, paper_format="Letter"
)
_CARD = PageDimensions(width_mm=CARD_WIDTH_MM, height_mm=CARD_HEIGHT_MM, margins_mm=Margins())


def resolve_template_kind(template_kind: Union[TemplateKind, str]) -> TemplateKind:
    if isinstance(template_kind, TemplateKind):
        return template_kind
    try:
        return TemplateKind(str(template_kind).strip().lower())
    except ValueError:
        raise UnsupportedTemplateError(str(template_kind)) from None


def is_us_region(region: str | None) -> bool:
    return (region or "").strip().lower() in US_REGION_FLAGS


def _regional_paper(region: str | None) -> PageDimensions:
    return _LETTER if is_us_region(region) else _A4


def dimensions_for(template_kind: Union[TemplateKind, str], region: str | None = None) -> PageDimensions:
    """
    Map a template kind and region flag to page size and margins.

    Single printed cards are a fixed 60x60mm square; sheet templates use
    A4 or US Letter depending on the region.

    Raises:
      UnsupportedTemplateError: For unknown template kinds.
    """
    kind = resolve_template_kind(template_kind)

    if kind is TemplateKind.SINGLE_SHEET_PRINT:
        return _CARD
    if kind is TemplateKind.DIGITAL_US:
        return _LETTER
    if kind in (TemplateKind.DIGITAL, TemplateKind.MULTI_SHEET_PRINT):
        return _regional_paper(region)

    raise UnsupportedTemplateError(kind.value)


def render_options(dimensions: PageDimensions) -> dict:
    """Express page dimensions as remote render options."""
    margins = dimensions.margins_mm
    options: dict = {
        "margin": {
            "top": f"{margins.top}mm",
            "right": f"{margins.right}mm",
            "bottom": f"{margins.bottom}mm",
            "left": f"{margins.left}mm",
        },
        "printBackground": True,
    }
    if dimensions.paper_format:
        options["format"] = dimensions.paper_format
    else:
        options["width"] = f"{dimensions.width_mm}mm"
        options["height"] = f"{dimensions.height_mm}mm"
    return options
