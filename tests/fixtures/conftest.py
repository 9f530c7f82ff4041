"""
Shared test fixtures for the panel report pipeline.
Provides dashboard panel payloads, variable maps, a tiny PNG and
in-process fakes for the Grafana client and the document canvas.
"""

from __future__ import annotations

import base64
import struct
import zlib
from typing import Any, Optional

from panel_reporter.config.settings import GrafanaConnection
from panel_reporter.exceptions import RenderFailureError
from panel_reporter.schemas.dashboard import DashboardApiResponse, PanelModel
from panel_reporter.schemas.variables import VariableValue


# ---------------------------------------------------------------------------
# Panel payloads
# ---------------------------------------------------------------------------

# Grafana 12.1: the repeat lives on the panel itself, no row involved.
PANELS_GRAFANA_121: list[dict[str, Any]] = [
    {"id": 3, "title": "Static panel", "type": "stat"},
    {"id": 1, "type": "stat", "title": "Iterator $iterator", "repeat": "iterator"},
]

# Grafana 12.3: an explicit collapsed row repeats; the panel sits after it
# at the top level and points back through rowPanelId.
PANELS_GRAFANA_123: list[dict[str, Any]] = [
    {"id": 3, "title": "Static panel", "type": "stat"},
    {"id": 2, "type": "row", "title": "Iterator $iterator", "repeat": "iterator", "collapsed": True},
    {"id": 1, "type": "stat", "title": "Iterator $iterator", "rowPanelId": 2},
]

# Legacy shape: collapsed rows carry their children inline.
PANELS_LEGACY_INLINE: list[dict[str, Any]] = [
    {"id": 3, "title": "Static panel", "type": "stat"},
    {
        "id": 2, "type": "row", "title": "Iterator $iterator", "repeat": "iterator", "collapsed": True,
        "panels": [{"id": 1, "type": "stat", "title": "Iterator $iterator"}],
    },
]

# Expanded row: the panels that follow it belong to it until the next row.
PANELS_EXPANDED_ROWS: list[dict[str, Any]] = [
    {"id": 100, "title": "Top", "type": "graph"},
    {"id": 10, "type": "row", "title": "CPU", "collapsed": False},
    {"id": 11, "type": "graph", "title": "CPU user"},
    {"id": 12, "type": "graph", "title": "CPU system"},
    {"id": 20, "type": "row", "title": "Memory", "collapsed": False},
    {"id": 21, "type": "graph", "title": "Memory used"},
]

ROW_10_REPEAT: dict[str, Any] = {
    "id": 10,
    "type": "row",
    "repeat": "iterator",
    "panels": [{"id": 1, "title": "Repeated panel", "type": "stat"}],
}

ITERATOR_VALUES = {
    "iterator": [
        VariableValue(value="1", text="Iterator 1"),
        VariableValue(value="2", text="Iterator 2"),
    ],
}


def panels(payload: list[dict[str, Any]]) -> list[PanelModel]:
    return [PanelModel.model_validate(p) for p in payload]


def values(**selections: list[str]) -> dict[str, list[VariableValue]]:
    """Shorthand VariableValueMap: ``values(env=["prod"])``."""
    return {name: [VariableValue(value=v) for v in items] for name, items in selections.items()}


# ---------------------------------------------------------------------------
# Dashboard payload
# ---------------------------------------------------------------------------

def dashboard_payload(
    panel_payload: Optional[list[dict[str, Any]]] = None,
    variables: Optional[list[dict[str, Any]]] = None,
    title: str = "Service Overview",
    slug: Optional[str] = "service-overview",
) -> dict[str, Any]:
    return {
        "dashboard": {
            "uid": "svc-1",
            "title": title,
            "panels": panel_payload if panel_payload is not None else PANELS_GRAFANA_123,
            "templating": {"list": variables if variables is not None else [
                {
                    "name": "iterator",
                    "type": "custom",
                    "current": {"value": ["1", "2"], "text": ["Iterator 1", "Iterator 2"]},
                    "options": [
                        {"value": "1", "text": "Iterator 1", "selected": True},
                        {"value": "2", "text": "Iterator 2", "selected": True},
                    ],
                },
            ]},
            "time": {"from": "now-24h", "to": "now"},
        },
        "meta": {"slug": slug},
    }


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)


def make_png(width: int = 2, height: int = 1, rgb: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    """Minimal valid RGB PNG of the given size."""
    row = b"\x00" + bytes(rgb) * width
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
        + _png_chunk(b"IDAT", zlib.compress(row * height))
        + _png_chunk(b"IEND", b"")
    )


TINY_PNG = make_png(2, 1)
TINY_PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(TINY_PNG).decode("ascii")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeGrafanaClient:
    """Stands in for GrafanaClient; records render calls."""

    def __init__(
        self,
        payload: Optional[dict[str, Any]] = None,
        image: bytes = b"png-bytes",
        fail_panel: Optional[Any] = None,
        on_render=None,
        user_theme: Optional[str] = None,
    ):
        self.connection = GrafanaConnection(base_url="http://grafana.local", user_theme=user_theme)
        self.payload = payload if payload is not None else dashboard_payload()
        self.image = image
        self.fail_panel = fail_panel
        self.on_render = on_render
        self.render_calls: list[dict[str, Any]] = []
        self.fetched: list[str] = []

    def fetch_dashboard(self, uid: str) -> DashboardApiResponse:
        self.fetched.append(uid)
        return DashboardApiResponse.model_validate(self.payload)

    def render_panel(self, dashboard_uid, slug, params, panel_id=None) -> bytes:
        self.render_calls.append({
            "uid": dashboard_uid, "slug": slug, "params": list(params), "panel_id": panel_id,
        })
        if self.on_render is not None:
            self.on_render(panel_id)
        if self.fail_panel is not None and panel_id == self.fail_panel:
            raise RenderFailureError(f"Rendering panel {panel_id} failed with HTTP 500",
                                     panel_id=panel_id, status_code=500)
        return self.image

    def fetch_bytes(self, url: str) -> bytes:
        return TINY_PNG


class RecordingCanvas:
    """DocumentCanvas that records every call instead of drawing."""

    def __init__(self, width: float = 595.0, height: float = 842.0):
        self.width = width
        self.height = height
        self.calls: list[tuple] = []
        self.saved = False

    def add_page(self) -> None:
        self.calls.append(("add_page",))

    def add_image(self, data, x, y, width, height) -> None:
        self.calls.append(("add_image", data, x, y, width, height))

    def set_font(self, family, style) -> None:
        self.calls.append(("set_font", family, style))

    def set_font_size(self, size) -> None:
        self.calls.append(("set_font_size", size))

    def set_text_color(self, color) -> None:
        self.calls.append(("set_text_color", color))

    def draw_text(self, text, x, y, align=None) -> None:
        self.calls.append(("draw_text", text, x, y, align))

    def page_size(self) -> tuple[float, float]:
        return self.width, self.height

    def save(self) -> None:
        self.saved = True

    def named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]
