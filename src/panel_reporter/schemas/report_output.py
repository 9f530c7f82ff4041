"""
Report pipeline records.

Intermediate values passed between stages (render queue entries, render
results, page geometry) are frozen dataclasses; the final run outcome is
a Pydantic model so it can be serialized for callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from panel_reporter.schemas.dashboard import PanelId
from panel_reporter.schemas.variables import ScopedVariableContext


# ---------------------------------------------------------------------------
# Render queue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenderablePanelInstance:
    """One panel for one repeat combination, ready to be rendered."""

    render_id: PanelId
    """Original id, or id + clone suffix for repeat iterations (unique per run)"""

    panel_id: PanelId
    """Canonical dashboard panel id sent to the render backend"""

    scoped_vars: ScopedVariableContext
    title_template: Optional[str]
    order_index: int


@dataclass(frozen=True)
class RenderResult:
    title: str
    image: bytes


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rect:
    """Axis-aligned box in page points, origin at the top-left corner."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class LayoutPlan:
    """Page grid shared by every page of a run."""

    page_width: float
    page_height: float
    margin: float
    spacing: float
    columns: int
    rows: int
    slot_width: float
    slot_height: float
    header_height: float
    footer_height: float
    title_band: float
    """Height reserved above each image for the panel title (0 when titles are off)"""

    @property
    def slots_per_page(self) -> int:
        return self.columns * self.rows


@dataclass(frozen=True)
class SlotPlacement:
    """Where one panel lands on its page."""

    slot: Rect
    image: Rect
    title_x: float
    title_y: float


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


class ReportOutcome(BaseModel):
    """Terminal state of a report run (errors are raised, not returned)."""

    status: Literal["completed", "cancelled"]
    file_name: Optional[str] = None
    file_path: Optional[Path] = None
    panel_count: int = Field(default=0, ge=0)
    page_count: int = Field(default=0, ge=0)
    warnings: list[dict[str, Any]] = Field(default_factory=list)
    """Non-fatal findings (``ProcessingError.to_dict()``), e.g. a logo that failed to load"""


# ---------------------------------------------------------------------------
# Branding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BrandingLogo:
    rect: Rect


@dataclass(frozen=True)
class BrandingText:
    """Page-number label or custom text, positioned at its baseline."""

    kind: Literal["page_number", "custom_text"]
    text: str
    x: float
    y: float
    align: Optional[Literal["center", "right"]]
    font_family: str
    font_style: str
    font_size: float
    font_color: Optional[str]


BrandingElement = Union[BrandingLogo, BrandingText]
