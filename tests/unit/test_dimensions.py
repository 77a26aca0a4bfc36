"""Unit tests for the page dimension policy."""

import pytest

from printgen.core.exceptions import UnsupportedTemplateError
from printgen.pipeline.dimensions import dimensions_for, render_options
from printgen.pipeline.models import TemplateKind


class TestDimensionsFor:
    def test_single_card_is_fixed_square(self):
        dims = dimensions_for(TemplateKind.SINGLE_SHEET_PRINT, "us")
        assert (dims.width_mm, dims.height_mm) == (60.0, 60.0)
        assert dims.margins_mm.top == 0.0
        assert dims.paper_format is None

    def test_digital_defaults_to_a4(self):
        dims = dimensions_for(TemplateKind.DIGITAL, "nl")
        assert (dims.width_mm, dims.height_mm) == (210.0, 297.0)
        assert dims.paper_format == "A4"

    @pytest.mark.parametrize("region", ["us", "US", "en-us", "en_US", "ca"])
    def test_digital_uses_letter_for_us_regions(self, region):
        dims = dimensions_for("digital", region)
        assert dims.paper_format == "Letter"
        assert dims.width_mm == pytest.approx(215.9)

    def test_digital_us_kind_is_always_letter(self):
        assert dimensions_for(TemplateKind.DIGITAL_US, "de").paper_format == "Letter"

    def test_multi_sheet_follows_region(self):
        assert dimensions_for(TemplateKind.MULTI_SHEET_PRINT, None).paper_format == "A4"
        assert dimensions_for(TemplateKind.MULTI_SHEET_PRINT, "us").paper_format == "Letter"

    def test_unknown_template(self):
        with pytest.raises(UnsupportedTemplateError) as exc_info:
            dimensions_for("poster", "eu")
        assert exc_info.value.details == {"template_kind": "poster"}


class TestRenderOptions:
    def test_paper_format_is_named(self):
        options = render_options(dimensions_for(TemplateKind.DIGITAL, "eu"))
        assert options["format"] == "A4"
        assert "width" not in options
        assert options["margin"]["left"] == "0.0mm"

    def test_card_is_sized_explicitly(self):
        options = render_options(dimensions_for(TemplateKind.SINGLE_SHEET_PRINT))
        assert options["width"] == "60.0mm"
        assert options["height"] == "60.0mm"
        assert "format" not in options
