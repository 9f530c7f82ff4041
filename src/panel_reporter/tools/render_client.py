"""
Grafana HTTP client: dashboard definitions and single-panel renders.

Thin wrapper around a ``requests.Session``. Every call has an explicit
(connect, read) timeout. Failures map to the pipeline's exception types;
nothing is retried here: retry policy belongs to the caller or to the
render backend.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import requests
from pydantic import ValidationError as PydanticValidationError

from panel_reporter.config.constants import DASHBOARD_API_PATH, DEFAULT_TIMEZONE, RENDER_API_PATH
from panel_reporter.config.settings import GrafanaConnection
from panel_reporter.exceptions import DashboardFetchError, RenderFailureError
from panel_reporter.schemas.dashboard import DashboardApiResponse, PanelId
from panel_reporter.schemas.layout import ReportTheme
from panel_reporter.tools.time_range import TimeValue

logger = logging.getLogger(__name__)


def resolve_theme_preference(preference: ReportTheme, user_theme: Optional[str] = None) -> str:
    """``user`` follows the acting user's theme; anything but ``light`` renders dark."""
    if preference == "user":
        return "light" if user_theme == "light" else "dark"
    return preference


def build_render_params(
    panel_id: PanelId,
    time_range: tuple[TimeValue, TimeValue],
    theme: str,
    width: int,
    height: int,
    timezone: Optional[str],
    variable_pairs: Sequence[tuple[str, str]] = (),
) -> list[tuple[str, str]]:
    """Ordered query pairs for ``/render/d-solo``; ``var-*`` pairs may repeat."""
    tz = str(timezone or DEFAULT_TIMEZONE)
    params = [
        ("panelId", str(panel_id)),
        ("from", str(time_range[0])),
        ("to", str(time_range[1])),
        ("theme", theme),
        ("width", str(width)),
        ("height", str(height)),
        ("timezone", tz),
        ("kiosk", "1"),
        ("tz", tz),
    ]
    params.extend(variable_pairs)
    return params


class GrafanaClient:
    """Blocking client; safe to share across render worker threads."""

    def __init__(self, connection: GrafanaConnection, session: Optional[requests.Session] = None):
        self.connection = connection
        self.session = session or requests.Session()
        if connection.api_token:
            self.session.headers["Authorization"] = f"Bearer {connection.api_token}"

    def _url(self, path: str) -> str:
        return f"{self.connection.base_url}{path}"

    def close(self) -> None:
        self.session.close()

    def fetch_dashboard(self, uid: str) -> DashboardApiResponse:
        """
        Load a dashboard definition by uid.

        Raises:
            DashboardFetchError: On transport errors, non-200 status or an
                unparseable payload.
        """
        url = self._url(DASHBOARD_API_PATH.format(uid=uid))
        try:
            resp = self.session.get(url, timeout=self.connection.timeout)
        except requests.RequestException as exc:
            raise DashboardFetchError(f"Dashboard '{uid}' could not be loaded: {exc}") from exc

        if resp.status_code != 200:
            raise DashboardFetchError(f"Dashboard '{uid}' returned HTTP {resp.status_code}")

        try:
            return DashboardApiResponse.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as exc:
            raise DashboardFetchError(f"Dashboard '{uid}' returned an invalid payload: {exc}") from exc

    def render_panel(
        self,
        dashboard_uid: str,
        slug: str,
        params: Sequence[tuple[str, str]],
        panel_id: Optional[PanelId] = None,
    ) -> bytes:
        """
        Fetch one rendered panel image.

        Raises:
            RenderFailureError: On transport errors, non-200 status or an
                empty body.
        """
        url = self._url(RENDER_API_PATH.format(uid=dashboard_uid, slug=slug))
        try:
            resp = self.session.get(url, params=list(params), timeout=self.connection.timeout)
        except requests.RequestException as exc:
            raise RenderFailureError(
                f"Rendering panel {panel_id} failed: {exc}", panel_id=panel_id,
            ) from exc

        if resp.status_code != 200:
            raise RenderFailureError(
                f"Rendering panel {panel_id} failed with HTTP {resp.status_code}",
                panel_id=panel_id,
                status_code=resp.status_code,
            )
        if not resp.content:
            raise RenderFailureError(
                f"The rendered image for panel {panel_id} was empty.", panel_id=panel_id,
            )
        logger.debug(f"[Render] Panel {panel_id}: {len(resp.content)} bytes")
        return resp.content

    def fetch_bytes(self, url: str) -> bytes:
        """GET an absolute URL or a path relative to the Grafana base URL."""
        target = url if url.startswith(("http://", "https://")) else self._url(url)
        resp = self.session.get(target, timeout=self.connection.timeout)
        resp.raise_for_status()
        return resp.content
