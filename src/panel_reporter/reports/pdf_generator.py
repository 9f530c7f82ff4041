"""
PDF Report Composer

Paints rendered panel images onto paginated, branded pages. Geometry comes
from ``layout_engine``; drawing goes through the small ``DocumentCanvas``
protocol so composition can be exercised without writing a real file.
``ReportLabCanvas`` is the production implementation.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas

from panel_reporter.config.constants import DEFAULT_FONT_COLOR, DEFAULT_SLUG, TIMESTAMP_FORMAT
from panel_reporter.reports.layout_engine import (
    chunk,
    compute_layout_plan,
    parse_hex_color,
    place_slot,
    plan_branding_band,
)
from panel_reporter.schemas.layout import LayoutSettings, ReportOrientation
from panel_reporter.schemas.report_output import BrandingLogo, BrandingText, RenderResult
from panel_reporter.tools.logo_loader import LogoAsset

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fonts & Colors
# ---------------------------------------------------------------------------

STANDARD_FONTS = {
    "helvetica": {
        "normal": "Helvetica",
        "bold": "Helvetica-Bold",
        "italic": "Helvetica-Oblique",
        "bolditalic": "Helvetica-BoldOblique",
    },
    "times": {
        "normal": "Times-Roman",
        "bold": "Times-Bold",
        "italic": "Times-Italic",
        "bolditalic": "Times-BoldItalic",
    },
    "courier": {
        "normal": "Courier",
        "bold": "Courier-Bold",
        "italic": "Courier-Oblique",
        "bolditalic": "Courier-BoldOblique",
    },
}

BLACK = colors.black


def resolve_font_name(family: Optional[str], style: Optional[str]) -> str:
    """Map a CSS-like family/style pair onto a reportlab standard font."""
    styles = STANDARD_FONTS.get((family or "").strip().lower(), STANDARD_FONTS["helvetica"])
    return styles.get((style or "").strip().lower(), styles["normal"])


# ---------------------------------------------------------------------------
# Canvas
# ---------------------------------------------------------------------------


class DocumentCanvas(Protocol):
    """Drawing surface used by ``compose_pdf``; coordinates are top-left based."""

    def add_page(self) -> None: ...

    def add_image(self, data: bytes, x: float, y: float, width: float, height: float) -> None: ...

    def set_font(self, family: str, style: str) -> None: ...

    def set_font_size(self, size: float) -> None: ...

    def set_text_color(self, color: Optional[str]) -> None: ...

    def draw_text(self, text: str, x: float, y: float, align: Optional[str] = None) -> None: ...

    def page_size(self) -> tuple[float, float]: ...

    def save(self) -> None: ...


class ReportLabCanvas:
    """``DocumentCanvas`` backed by ``reportlab.pdfgen.canvas.Canvas`` on A4 pages."""

    def __init__(
        self,
        target: Union[str, Path, io.BytesIO],
        orientation: ReportOrientation = "portrait",
        title: Optional[str] = None,
    ):
        self.pagesize = landscape(A4) if orientation == "landscape" else portrait(A4)
        if isinstance(target, Path):
            target = str(target)
        self._canvas = pdf_canvas.Canvas(target, pagesize=self.pagesize)
        if title:
            self._canvas.setTitle(title)
        self._family = "helvetica"
        self._style = "normal"
        self._size = 12.0
        self._apply_font()

    def _apply_font(self) -> None:
        self._canvas.setFont(resolve_font_name(self._family, self._style), self._size)

    def add_page(self) -> None:
        self._canvas.showPage()
        # showPage resets the graphics state
        self._apply_font()

    def add_image(self, data: bytes, x: float, y: float, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            return
        page_height = self.pagesize[1]
        self._canvas.drawImage(
            ImageReader(io.BytesIO(data)),
            x, page_height - y - height,
            width=width, height=height,
            mask="auto",
        )

    def set_font(self, family: str, style: str) -> None:
        self._family, self._style = family, style
        self._apply_font()

    def set_font_size(self, size: float) -> None:
        self._size = float(size)
        self._apply_font()

    def set_text_color(self, color: Optional[str]) -> None:
        rgb = parse_hex_color(color) or parse_hex_color(DEFAULT_FONT_COLOR)
        if rgb is None:
            self._canvas.setFillColor(BLACK)
            return
        r, g, b = rgb
        self._canvas.setFillColorRGB(r / 255, g / 255, b / 255)

    def draw_text(self, text: str, x: float, y: float, align: Optional[str] = None) -> None:
        baseline = self.pagesize[1] - y
        if align == "center":
            self._canvas.drawCentredString(x, baseline, text)
        elif align == "right":
            self._canvas.drawRightString(x, baseline, text)
        else:
            self._canvas.drawString(x, baseline, text)

    def page_size(self) -> tuple[float, float]:
        return float(self.pagesize[0]), float(self.pagesize[1])

    def save(self) -> None:
        self._canvas.save()


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def _paint_branding(
    doc: DocumentCanvas,
    elements: Sequence[Union[BrandingLogo, BrandingText]],
    logo: Optional[LogoAsset],
) -> None:
    for element in elements:
        if isinstance(element, BrandingLogo):
            if logo is not None:
                rect = element.rect
                doc.add_image(logo.data, rect.x, rect.y, rect.width, rect.height)
            continue
        doc.set_font(element.font_family, element.font_style)
        doc.set_font_size(element.font_size)
        doc.set_text_color(element.font_color)
        doc.draw_text(element.text, element.x, element.y, align=element.align)


def compose_pdf(
    results: Sequence[RenderResult],
    layout: LayoutSettings,
    doc: DocumentCanvas,
    logo: Optional[LogoAsset] = None,
) -> int:
    """
    Paint every page of the report onto ``doc``.

    Each chunk of ``panels.per_page`` results fills one page: titles and
    images slot by slot, then the header band, then the footer band.

    Args:
        results: Rendered panels in report order.
        layout: Resolved layout settings.
        doc: Target canvas; the first page must already be open.
        logo: Loaded branding logo, if any.

    Returns:
        Number of pages painted.
    """
    page_width, page_height = doc.page_size()
    plan = compute_layout_plan(page_width, page_height, layout, logo)
    title = layout.panels.title
    pages = chunk(results, layout.panels.per_page)
    total_pages = len(pages)

    for page_index, page_results in enumerate(pages):
        if page_index > 0:
            doc.add_page()

        for slot_index, result in enumerate(page_results):
            placement = place_slot(
                plan, slot_index,
                layout.panels.width, layout.panels.height,
                title_font_size=title.font_size,
            )
            if title.enabled and result.title:
                doc.set_font(title.font_family, title.font_style)
                doc.set_font_size(title.font_size)
                doc.set_text_color(title.font_color)
                doc.draw_text(result.title, placement.title_x, placement.title_y)
            image = placement.image
            doc.add_image(result.image, image.x, image.y, image.width, image.height)

        for band, height in (("header", plan.header_height), ("footer", plan.footer_height)):
            elements = plan_branding_band(
                band, layout, logo, height,
                page_width, page_height,
                page_index + 1, total_pages,
            )
            _paint_branding(doc, elements, logo)

    logger.info(f"[PDF] Composed {len(results)} panels on {total_pages} pages")
    return total_pages


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------


def slugify(value: Optional[str]) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or DEFAULT_SLUG


def build_file_name(title: Optional[str], now: Optional[datetime] = None) -> str:
    """``<slug>-<YYYYmmdd-HHMMSS>.pdf``"""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return f"{slugify(title)}-{stamp}.pdf"
