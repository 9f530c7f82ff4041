"""
Layout & branding settings schemas.

``LayoutSettings`` is always fully resolved: every field carries a default,
so a partial settings file (camelCase as written by the settings UI, or
snake_case) validates into a complete object. The pipeline never sees a
partial config.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from panel_reporter.config.constants import (
    DEFAULT_BRANDING_LINE_HEIGHT,
    DEFAULT_BRANDING_PADDING,
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_STYLE,
    DEFAULT_LOGO_HEIGHT,
    DEFAULT_LOGO_WIDTH,
    DEFAULT_PAGE_LABEL_LANGUAGE,
    DEFAULT_PAGE_MARGIN,
    DEFAULT_PAGE_NUMBER_FONT_SIZE,
    DEFAULT_PANEL_SPACING,
    DEFAULT_PANELS_PER_PAGE,
    DEFAULT_RENDER_CONCURRENCY,
    DEFAULT_RENDER_HEIGHT,
    DEFAULT_RENDER_WIDTH,
    DEFAULT_TITLE_FONT_SIZE,
)
from panel_reporter.exceptions import LayoutSettingsError

logger = logging.getLogger(__name__)

ReportTheme = Literal["light", "dark", "user"]
ReportOrientation = Literal["portrait", "landscape"]
BrandingPlacement = Literal["header", "footer"]
BrandingAlignment = Literal["left", "center", "right"]
FontStyle = Literal["normal", "bold", "italic", "bolditalic"]


class _SettingsModel(BaseModel):
    """Accepts both camelCase (settings UI) and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class PanelTitleSettings(_SettingsModel):
    enabled: bool = True
    font_size: float = Field(default=DEFAULT_TITLE_FONT_SIZE, gt=0)
    font_family: str = DEFAULT_FONT_FAMILY
    font_style: FontStyle = DEFAULT_FONT_STYLE
    font_color: str = DEFAULT_FONT_COLOR


class PanelSettings(_SettingsModel):
    per_page: int = DEFAULT_PANELS_PER_PAGE
    spacing: float = DEFAULT_PANEL_SPACING
    width: int = Field(default=DEFAULT_RENDER_WIDTH, ge=1, description="Render width in pixels")
    height: int = Field(default=DEFAULT_RENDER_HEIGHT, ge=1, description="Render height in pixels")
    title: PanelTitleSettings = Field(default_factory=PanelTitleSettings)

    @field_validator("per_page")
    @classmethod
    def clamp_per_page(cls, v: int) -> int:
        return max(1, v)

    @field_validator("spacing")
    @classmethod
    def clamp_spacing(cls, v: float) -> float:
        return max(0.0, v)


class LogoSettings(_SettingsModel):
    enabled: Optional[bool] = None
    url: Optional[str] = None
    placement: BrandingPlacement = "footer"
    alignment: BrandingAlignment = "left"
    width: float = Field(default=DEFAULT_LOGO_WIDTH, gt=0)
    height: float = Field(default=DEFAULT_LOGO_HEIGHT, gt=0)

    @model_validator(mode="after")
    def resolve_enabled(self) -> "LogoSettings":
        """A logo URL without an explicit toggle turns the logo on."""
        if self.url is not None:
            self.url = self.url.strip() or None
        if self.enabled is None:
            self.enabled = self.url is not None
        return self


class PageNumberSettings(_SettingsModel):
    enabled: bool = True
    placement: BrandingPlacement = "footer"
    alignment: BrandingAlignment = "right"
    language: str = DEFAULT_PAGE_LABEL_LANGUAGE
    font_family: str = DEFAULT_FONT_FAMILY
    font_style: FontStyle = DEFAULT_FONT_STYLE
    font_size: float = Field(default=DEFAULT_PAGE_NUMBER_FONT_SIZE, gt=0)
    font_color: str = DEFAULT_FONT_COLOR


class BrandingBandSettings(_SettingsModel):
    padding: float = Field(default=DEFAULT_BRANDING_PADDING, ge=0)
    line_height: float = Field(default=DEFAULT_BRANDING_LINE_HEIGHT, gt=0)


class CustomTextElement(_SettingsModel):
    """Free text painted in the header or footer band."""

    type: Literal["text"] = "text"
    content: str = ""
    placement: BrandingPlacement = "footer"
    alignment: BrandingAlignment = "left"
    font_size: Optional[float] = Field(default=None, gt=0)
    font_family: Optional[str] = None
    font_style: Optional[FontStyle] = None
    font_color: Optional[str] = None


class LayoutSettings(_SettingsModel):
    """Fully resolved page layout, branding and render preferences."""

    orientation: ReportOrientation = "portrait"
    page_margin: float = Field(default=DEFAULT_PAGE_MARGIN, ge=0)
    render_concurrency: int = DEFAULT_RENDER_CONCURRENCY
    panels: PanelSettings = Field(default_factory=PanelSettings)
    logo: LogoSettings = Field(default_factory=LogoSettings)
    page_number: PageNumberSettings = Field(default_factory=PageNumberSettings)
    header: BrandingBandSettings = Field(default_factory=BrandingBandSettings)
    footer: BrandingBandSettings = Field(default_factory=BrandingBandSettings)
    custom_elements: list[CustomTextElement] = Field(default_factory=list)

    @field_validator("render_concurrency")
    @classmethod
    def clamp_concurrency(cls, v: int) -> int:
        return max(1, v)

    def band(self, placement: BrandingPlacement) -> BrandingBandSettings:
        return self.header if placement == "header" else self.footer


class ReporterSettings(_SettingsModel):
    theme_preference: ReportTheme = "user"
    layout: LayoutSettings = Field(default_factory=LayoutSettings)


# ---------------------------------------------------------------------------
# Resolution helpers
# ---------------------------------------------------------------------------

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_keys(value: Any) -> Any:
    """Recursively convert camelCase dict keys to snake_case."""
    if isinstance(value, dict):
        return {
            _CAMEL_BOUNDARY.sub("_", str(k)).lower(): _snake_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def _deep_merge(base: dict, patch: dict) -> dict:
    """Merge ``patch`` over ``base``; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_layout_settings(layout: Optional[dict] = None) -> LayoutSettings:
    """
    Resolve a partial layout dict into a complete LayoutSettings.

    Raises:
        LayoutSettingsError: If a provided value fails validation.
    """
    try:
        return LayoutSettings.model_validate(_snake_keys(layout or {}))
    except ValidationError as exc:
        raise LayoutSettingsError(f"Invalid layout settings: {exc}") from exc


def merge_layout_patch(base: dict, patch: Optional[dict]) -> dict:
    """
    Merge two partial layout dicts (e.g. stored settings + manual overrides).

    Section objects (panels, panels.title, logo, pageNumber, header, footer)
    merge key by key; ``customElements`` is replaced as a whole.
    """
    if not patch:
        return _snake_keys(base)
    return _deep_merge(_snake_keys(base), _snake_keys(patch))


def apply_layout_overrides(settings: ReporterSettings, patches: Sequence[dict]) -> ReporterSettings:
    """
    Layer manual layout overrides on top of stored reporter settings.

    Patches are applied in order, so later ones win.

    Raises:
        LayoutSettingsError: If the merged layout fails validation.
    """
    if not patches:
        return settings
    merged = settings.layout.model_dump()
    for patch in patches:
        merged = merge_layout_patch(merged, patch)
    layout = resolve_layout_settings(merged)
    logger.info(f"[Settings] Applied {len(patches)} layout override(s)")
    return settings.model_copy(update={"layout": layout})


def load_reporter_settings(path: Path) -> ReporterSettings:
    """
    Load reporter settings from a JSON file.

    The file may hold either ``{"themePreference": ..., "layout": {...}}``
    or a bare layout object.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise LayoutSettingsError(f"Cannot read settings file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise LayoutSettingsError(f"{path}: settings must be a JSON object")

    data = _snake_keys(raw)
    if "layout" not in data and "theme_preference" not in data:
        data = {"layout": data}

    try:
        settings = ReporterSettings.model_validate(data)
    except ValidationError as exc:
        raise LayoutSettingsError(f"{path}: {exc}") from exc

    logger.info(f"[Settings] Loaded reporter settings from {path}")
    return settings
