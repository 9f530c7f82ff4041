"""
Layout & Pagination Engine

Pure page geometry for the PDF report: the slot grid, aspect-preserving
image fitting, header/footer branding bands and the positions of the
logo, page-number label and custom text inside them.

All coordinates are page points with the origin at the top-left corner;
the canvas adapter converts to PDF space.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, TypeVar

from panel_reporter.config.constants import (
    DEFAULT_PAGE_LABEL_LANGUAGE,
    MIN_CONTENT_HEIGHT,
    MIN_SLOT_HEIGHT,
    MIN_SLOT_WIDTH,
    PAGE_LABEL_TEMPLATES,
    TEXT_BASELINE_DIVISOR,
    TITLE_BAND_PADDING,
    TWO_COLUMN_THRESHOLD,
)
from panel_reporter.schemas.layout import BrandingAlignment, BrandingPlacement, LayoutSettings
from panel_reporter.schemas.report_output import (
    BrandingElement,
    BrandingLogo,
    BrandingText,
    LayoutPlan,
    Rect,
    SlotPlacement,
)
from panel_reporter.tools.logo_loader import LogoAsset

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def determine_grid_columns(slots_per_page: int) -> int:
    """One column below four panels per page, two otherwise."""
    return 2 if slots_per_page >= TWO_COLUMN_THRESHOLD else 1


def fit_rectangle(
    max_width: float,
    max_height: float,
    original_width: float,
    original_height: float,
) -> tuple[float, float]:
    """
    Largest (width, height) with the original aspect ratio fitting the box.

    Degenerate inputs (any dimension <= 0) give (0, 0).
    """
    if max_width <= 0 or max_height <= 0 or original_width <= 0 or original_height <= 0:
        return 0.0, 0.0

    aspect_ratio = original_width / original_height
    width = float(max_width)
    height = width / aspect_ratio
    if height > max_height:
        height = float(max_height)
        width = height * aspect_ratio
    return width, height


def parse_hex_color(value: Optional[str]) -> Optional[tuple[int, int, int]]:
    """``#abc`` / ``#aabbcc`` -> (r, g, b); anything else -> None."""
    if not value:
        return None
    normalized = value.replace("#", "").strip()
    if len(normalized) == 3:
        normalized = "".join(c * 2 for c in normalized)
    if len(normalized) != 6:
        return None
    try:
        number = int(normalized, 16)
    except ValueError:
        return None
    return (number >> 16) & 255, (number >> 8) & 255, number & 255


def format_page_label(language: Optional[str], page_number: int, total_pages: int) -> str:
    """Locale-aware page label; unknown language codes fall back to English."""
    code = (language or "").strip().lower()[:2]
    template = PAGE_LABEL_TEMPLATES.get(code, PAGE_LABEL_TEMPLATES[DEFAULT_PAGE_LABEL_LANGUAGE])
    return template.format(page=page_number, total=total_pages)


def get_aligned_x(
    alignment: BrandingAlignment,
    content_width: float,
    page_width: float,
    page_margin: float,
) -> float:
    """Left edge of a box of ``content_width`` aligned within the page margins."""
    if alignment == "center":
        return page_width / 2 - content_width / 2
    if alignment == "right":
        return page_width - page_margin - content_width
    return page_margin


def get_aligned_text_position(
    alignment: BrandingAlignment,
    page_width: float,
    page_margin: float,
) -> tuple[float, Optional[str]]:
    """Anchor x and text alignment for a single line of text."""
    if alignment == "center":
        return page_width / 2, "center"
    if alignment == "right":
        return page_width - page_margin, "right"
    return page_margin, None


def chunk(items: Sequence[T], size: int) -> list[Sequence[T]]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


# ---------------------------------------------------------------------------
# Branding bands
# ---------------------------------------------------------------------------

def get_logo_dimensions(
    placement: BrandingPlacement,
    layout: LayoutSettings,
    logo: Optional[LogoAsset],
) -> Optional[tuple[float, float]]:
    """Fitted logo size when the logo is enabled, loaded and assigned to ``placement``."""
    if not (layout.logo.enabled and layout.logo.placement == placement and logo is not None):
        return None
    return fit_rectangle(layout.logo.width, layout.logo.height, logo.width, logo.height)


def get_branding_reserved_height(
    placement: BrandingPlacement,
    layout: LayoutSettings,
    logo: Optional[LogoAsset] = None,
) -> float:
    """
    Height reserved for the header or footer band.

    The tallest of: the fitted logo, the band's line height (page numbers)
    and each custom text element (its own font size, else the line height),
    plus the band padding on both sides. Exactly 0 when nothing targets the
    placement.
    """
    band = layout.band(placement)
    max_height = 0.0

    logo_dimensions = get_logo_dimensions(placement, layout, logo)
    if logo_dimensions is not None:
        max_height = logo_dimensions[1]

    if layout.page_number.enabled and layout.page_number.placement == placement:
        max_height = max(max_height, band.line_height)

    for element in layout.custom_elements:
        if element.type != "text" or element.placement != placement:
            continue
        max_height = max(
            max_height,
            element.font_size if element.font_size is not None else band.line_height,
        )

    if max_height <= 0:
        return 0.0
    return max_height + band.padding * 2


def plan_branding_band(
    placement: BrandingPlacement,
    layout: LayoutSettings,
    logo: Optional[LogoAsset],
    area_height: float,
    page_width: float,
    page_height: float,
    page_number: int,
    total_pages: int,
) -> list[BrandingElement]:
    """Elements to paint in one band of one page, vertically centered in the band."""
    if not area_height:
        return []

    band = layout.band(placement)
    area_top = band.padding if placement == "header" else page_height - area_height + band.padding
    center_y = area_top + (area_height - band.padding * 2) / 2
    margin = layout.page_margin
    elements: list[BrandingElement] = []

    logo_dimensions = get_logo_dimensions(placement, layout, logo)
    if logo_dimensions is not None:
        logo_w, logo_h = logo_dimensions
        elements.append(BrandingLogo(rect=Rect(
            x=get_aligned_x(layout.logo.alignment, logo_w, page_width, margin),
            y=center_y - logo_h / 2,
            width=logo_w,
            height=logo_h,
        )))

    numbers = layout.page_number
    if numbers.enabled and numbers.placement == placement:
        text_x, align = get_aligned_text_position(numbers.alignment, page_width, margin)
        elements.append(BrandingText(
            kind="page_number",
            text=format_page_label(numbers.language, page_number, total_pages),
            x=text_x,
            y=center_y + band.line_height / TEXT_BASELINE_DIVISOR,
            align=align,
            font_family=numbers.font_family,
            font_style=numbers.font_style,
            font_size=numbers.font_size,
            font_color=numbers.font_color,
        ))

    for element in layout.custom_elements:
        if element.type != "text" or element.placement != placement:
            continue
        font_size = element.font_size if element.font_size is not None else band.line_height
        text_x, align = get_aligned_text_position(element.alignment, page_width, margin)
        elements.append(BrandingText(
            kind="custom_text",
            text=element.content,
            x=text_x,
            y=center_y + font_size / TEXT_BASELINE_DIVISOR,
            align=align,
            font_family=element.font_family or numbers.font_family,
            font_style=element.font_style or numbers.font_style,
            font_size=font_size,
            font_color=element.font_color or numbers.font_color,
        ))

    return elements


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

def compute_layout_plan(
    page_width: float,
    page_height: float,
    layout: LayoutSettings,
    logo: Optional[LogoAsset] = None,
) -> LayoutPlan:
    """
    Slot grid shared by every page of a run.

    The trailing page reuses this grid even when partially filled; empty
    slots stay empty.
    """
    per_page = max(1, layout.panels.per_page)
    spacing = max(0.0, layout.panels.spacing)
    margin = layout.page_margin
    columns = determine_grid_columns(per_page)
    rows = max(1, math.ceil(per_page / columns))
    header_height = get_branding_reserved_height("header", layout, logo)
    footer_height = get_branding_reserved_height("footer", layout, logo)

    slot_width = max(
        MIN_SLOT_WIDTH,
        (page_width - margin * 2 - spacing * (columns - 1)) / columns,
    )
    slot_height = max(
        MIN_SLOT_HEIGHT,
        (page_height - margin * 2 - header_height - footer_height - spacing * (rows - 1)) / rows,
    )
    title = layout.panels.title
    title_band = title.font_size + TITLE_BAND_PADDING if title.enabled else 0.0

    plan = LayoutPlan(
        page_width=page_width,
        page_height=page_height,
        margin=margin,
        spacing=spacing,
        columns=columns,
        rows=rows,
        slot_width=slot_width,
        slot_height=slot_height,
        header_height=header_height,
        footer_height=footer_height,
        title_band=title_band,
    )
    logger.info(
        f"[Layout] {columns}x{rows} grid, slot {slot_width:.1f}x{slot_height:.1f}pt, "
        f"header {header_height:.1f}pt, footer {footer_height:.1f}pt"
    )
    return plan


def place_slot(
    plan: LayoutPlan,
    slot_index: int,
    source_width: float,
    source_height: float,
    title_font_size: float = 0.0,
) -> SlotPlacement:
    """Slot box, fitted image box and title baseline for one slot of a page."""
    row_index = slot_index // plan.columns
    column_index = slot_index % plan.columns
    x = plan.margin + column_index * (plan.slot_width + plan.spacing)
    y = plan.margin + plan.header_height + row_index * (plan.slot_height + plan.spacing)

    content_height = max(MIN_CONTENT_HEIGHT, plan.slot_height - plan.title_band)
    image_width, image_height = fit_rectangle(plan.slot_width, content_height, source_width, source_height)

    return SlotPlacement(
        slot=Rect(x=x, y=y, width=plan.slot_width, height=plan.slot_height),
        image=Rect(
            x=x + (plan.slot_width - image_width) / 2,
            y=y + plan.title_band + (content_height - image_height) / 2,
            width=image_width,
            height=image_height,
        ),
        title_x=x,
        title_y=y + (title_font_size if plan.title_band else 0.0),
    )
