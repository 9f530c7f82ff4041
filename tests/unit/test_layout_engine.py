"""
Layout & Pagination Engine Tests
Level 1: Pure geometry, no rendering, no file I/O.

Page used throughout: A4 portrait in points (595 x 842).
"""

from __future__ import annotations

import pytest

from panel_reporter.reports.layout_engine import (
    chunk,
    compute_layout_plan,
    determine_grid_columns,
    fit_rectangle,
    format_page_label,
    get_aligned_text_position,
    get_aligned_x,
    get_branding_reserved_height,
    parse_hex_color,
    place_slot,
    plan_branding_band,
)
from panel_reporter.schemas.layout import resolve_layout_settings
from panel_reporter.schemas.report_output import BrandingLogo, BrandingText
from panel_reporter.tools.logo_loader import LogoAsset

PAGE_W, PAGE_H = 595.0, 842.0
LOGO = LogoAsset(data=b"", width=300, height=100)


# ---------------------------------------------------------------------------
# TestPrimitives
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestPrimitives:

    @pytest.mark.parametrize("per_page,expected", [(1, 1), (2, 1), (3, 1), (4, 2), (6, 2), (9, 2)])
    def test_grid_columns(self, per_page, expected):
        assert determine_grid_columns(per_page) == expected

    def test_fit_width_bound(self):
        assert fit_rectangle(531, 350, 1000, 500) == (531.0, 265.5)

    def test_fit_height_bound(self):
        assert fit_rectangle(400, 100, 1000, 500) == (200.0, 100.0)

    @pytest.mark.parametrize("args", [(0, 10, 1, 1), (10, -1, 1, 1), (10, 10, 0, 1), (10, 10, 1, 0)])
    def test_fit_degenerate(self, args):
        assert fit_rectangle(*args) == (0.0, 0.0)

    def test_parse_hex_color(self):
        assert parse_hex_color("#abc") == (0xAA, 0xBB, 0xCC)
        assert parse_hex_color("#102030") == (16, 32, 48)
        assert parse_hex_color("102030") == (16, 32, 48)
        assert parse_hex_color("#12") is None
        assert parse_hex_color("#zzzzzz") is None
        assert parse_hex_color(None) is None

    def test_page_labels(self):
        assert format_page_label("en", 1, 3) == "Page 1 of 3"
        assert format_page_label("de", 2, 3) == "Seite 2 von 3"
        assert format_page_label("de-AT", 2, 3) == "Seite 2 von 3"
        assert format_page_label("xx", 1, 1) == "Page 1 of 1"
        assert format_page_label(None, 1, 1) == "Page 1 of 1"

    def test_alignment(self):
        assert get_aligned_x("left", 100, PAGE_W, 32) == 32
        assert get_aligned_x("center", 100, PAGE_W, 32) == PAGE_W / 2 - 50
        assert get_aligned_x("right", 100, PAGE_W, 32) == PAGE_W - 32 - 100
        assert get_aligned_text_position("left", PAGE_W, 32) == (32, None)
        assert get_aligned_text_position("center", PAGE_W, 32) == (PAGE_W / 2, "center")
        assert get_aligned_text_position("right", PAGE_W, 32) == (PAGE_W - 32, "right")

    def test_chunk(self):
        assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunk([], 2) == []
        assert chunk([1, 2], 0) == [[1], [2]]


# ---------------------------------------------------------------------------
# TestBrandingReservation
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestBrandingReservation:

    def test_logo_and_page_numbers_in_header(self):
        layout = resolve_layout_settings({
            "logo": {"enabled": True, "placement": "header", "url": "data:image/png;base64,abc"},
            "pageNumber": {"enabled": True, "placement": "header"},
        })
        assert get_branding_reserved_height("header", layout, LOGO) > 0
        assert get_branding_reserved_height("footer", layout) == 0

    def test_nothing_assigned_reserves_zero(self):
        layout = resolve_layout_settings({"pageNumber": {"enabled": False}})
        assert get_branding_reserved_height("header", layout) == 0
        assert get_branding_reserved_height("footer", layout) == 0

    def test_page_number_line_height_plus_padding(self):
        layout = resolve_layout_settings({})
        assert get_branding_reserved_height("footer", layout) == 14 + 2 * 8

    def test_logo_fitted_height(self):
        layout = resolve_layout_settings({"logo": {"url": "x.png"}, "pageNumber": {"enabled": False}})
        assert get_branding_reserved_height("footer", layout, LOGO) == 40 + 2 * 8

    def test_unloaded_logo_reserves_nothing(self):
        layout = resolve_layout_settings({"logo": {"url": "x.png"}, "pageNumber": {"enabled": False}})
        assert get_branding_reserved_height("footer", layout, None) == 0

    def test_custom_text_own_font_size(self):
        layout = resolve_layout_settings({
            "pageNumber": {"enabled": False},
            "customElements": [{"type": "text", "content": "Confidential", "placement": "header", "fontSize": 20}],
        })
        assert get_branding_reserved_height("header", layout) == 20 + 2 * 8


# ---------------------------------------------------------------------------
# TestLayoutPlan
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestLayoutPlan:

    def test_default_plan(self):
        plan = compute_layout_plan(PAGE_W, PAGE_H, resolve_layout_settings({}))
        assert (plan.columns, plan.rows) == (1, 2)
        assert plan.slot_width == 531
        assert plan.slot_height == 366
        assert plan.header_height == 0
        assert plan.footer_height == 30
        assert plan.title_band == 16

    def test_four_per_page_two_columns(self):
        plan = compute_layout_plan(PAGE_W, PAGE_H, resolve_layout_settings({"panels": {"perPage": 4}}))
        assert (plan.columns, plan.rows) == (2, 2)
        assert plan.slots_per_page == 4
        assert plan.slot_width == (595 - 64 - 16) / 2

    def test_slot_floors(self):
        layout = resolve_layout_settings({"panels": {"perPage": 200}, "pageMargin": 0})
        plan = compute_layout_plan(100, 100, layout)
        assert plan.slot_width >= 10
        assert plan.slot_height == 40

    def test_titles_disabled(self):
        layout = resolve_layout_settings({"panels": {"title": {"enabled": False}}})
        assert compute_layout_plan(PAGE_W, PAGE_H, layout).title_band == 0

    def test_slot_placement(self):
        plan = compute_layout_plan(PAGE_W, PAGE_H, resolve_layout_settings({}))
        placed = place_slot(plan, 1, 1000, 500, title_font_size=12)

        assert (placed.slot.x, placed.slot.y) == (32, 414)
        assert (placed.image.width, placed.image.height) == (531, 265.5)
        assert placed.image.y == 414 + 16 + (350 - 265.5) / 2
        assert placed.title_y == 414 + 12

    def test_second_column(self):
        layout = resolve_layout_settings({"panels": {"perPage": 4}})
        plan = compute_layout_plan(PAGE_W, PAGE_H, layout)
        placed = place_slot(plan, 3, 1000, 500)
        assert placed.slot.x == 32 + plan.slot_width + 16
        assert placed.slot.y == 32 + plan.slot_height + 16

    def test_header_pushes_slots_down(self):
        layout = resolve_layout_settings({"pageNumber": {"placement": "header"}})
        plan = compute_layout_plan(PAGE_W, PAGE_H, layout)
        assert place_slot(plan, 0, 1000, 500).slot.y == 32 + 30


# ---------------------------------------------------------------------------
# TestBrandingBand
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestBrandingBand:

    def test_footer_page_number(self):
        layout = resolve_layout_settings({})
        elements = plan_branding_band("footer", layout, None, 30, PAGE_W, PAGE_H, 2, 3)

        assert len(elements) == 1
        label = elements[0]
        assert isinstance(label, BrandingText)
        assert label.text == "Page 2 of 3"
        assert label.align == "right"
        assert label.x == PAGE_W - 32
        assert label.y == pytest.approx(827 + 14 / 3)

    def test_zero_height_band_is_empty(self):
        layout = resolve_layout_settings({})
        assert plan_branding_band("header", layout, None, 0, PAGE_W, PAGE_H, 1, 1) == []

    def test_header_logo_centered_vertically(self):
        layout = resolve_layout_settings({
            "logo": {"url": "x.png", "placement": "header", "alignment": "center"},
            "pageNumber": {"enabled": False},
        })
        height = get_branding_reserved_height("header", layout, LOGO)
        elements = plan_branding_band("header", layout, LOGO, height, PAGE_W, PAGE_H, 1, 1)

        assert len(elements) == 1
        logo = elements[0]
        assert isinstance(logo, BrandingLogo)
        center_y = 8 + (height - 16) / 2
        assert logo.rect.y == center_y - 20
        assert logo.rect.x == PAGE_W / 2 - 60
        assert (logo.rect.width, logo.rect.height) == (120, 40)

    def test_custom_text_inherits_page_number_font(self):
        layout = resolve_layout_settings({
            "pageNumber": {"fontFamily": "times", "fontColor": "#333333"},
            "customElements": [{"content": "ACME Corp", "alignment": "center"}],
        })
        elements = plan_branding_band("footer", layout, None, 30, PAGE_W, PAGE_H, 1, 1)
        custom = [e for e in elements if isinstance(e, BrandingText) and e.kind == "custom_text"]

        assert len(custom) == 1
        assert custom[0].text == "ACME Corp"
        assert custom[0].font_family == "times"
        assert custom[0].font_color == "#333333"
        assert custom[0].font_size == 14
        assert custom[0].align == "center"
