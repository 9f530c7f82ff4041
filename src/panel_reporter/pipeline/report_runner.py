"""
Dashboard Report Pipeline

Sequences one report run end to end:

    load dashboard -> resolve variables -> normalize + flatten panels
    -> resolve time range + logo -> render (concurrent) -> compose -> save

Progress is reported through a plain callback, in order. Cancellation is
a ``threading.Event`` checked between stages and by the render scheduler;
a cancelled run saves nothing.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from panel_reporter.exceptions import (
    EmptyPanelSetError,
    MissingDashboardContextError,
    ProcessingError,
    RenderCancelled,
)
from panel_reporter.reports.pdf_generator import (
    DocumentCanvas,
    ReportLabCanvas,
    build_file_name,
    compose_pdf,
    slugify,
)
from panel_reporter.schemas.dashboard import DashboardTemplateVariable, RawTimeRange
from panel_reporter.schemas.layout import ReporterSettings, ReportOrientation
from panel_reporter.schemas.report_output import RenderablePanelInstance, RenderResult, ReportOutcome
from panel_reporter.schemas.variables import VariableValueMap, merge_scoped_vars
from panel_reporter.tools.logo_loader import load_logo_asset
from panel_reporter.tools.panel_flattener import flatten_panels
from panel_reporter.tools.panel_tree import group_panels_by_rows, validate_panel_tree
from panel_reporter.tools.render_client import GrafanaClient, build_render_params, resolve_theme_preference
from panel_reporter.tools.render_scheduler import run_with_concurrency
from panel_reporter.tools.time_range import TimeValue, resolve_time_range
from panel_reporter.tools.title_template import get_panel_title
from panel_reporter.tools.variable_resolver import (
    build_scoped_vars_from_value_map,
    build_variable_pairs,
    get_dashboard_template_variable_values,
    get_scoped_variable_overrides,
    get_session_variable_values,
    merge_variable_values,
    resolve_variable_values,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
CanvasFactory = Callable[[Path, ReportOrientation, Optional[str]], DocumentCanvas]

MSG_LOADING = "Loading dashboard definition..."
MSG_COMPOSING = "Composing PDF..."
MSG_SAVING = "Saving PDF..."
MSG_READY = "Report ready."
MSG_CANCELLED = "Report generation cancelled."
MSG_MISSING_DASHBOARD = "Dashboard information was not available for this action."
MSG_NO_PANELS = "No panels were found on this dashboard."


def _default_canvas(path: Path, orientation: ReportOrientation, title: Optional[str]) -> DocumentCanvas:
    return ReportLabCanvas(path, orientation=orientation, title=title)


class _RenderJob:
    """Per-run constants shared by every render worker."""

    def __init__(
        self,
        client: GrafanaClient,
        dashboard_uid: str,
        slug: str,
        variable_values: VariableValueMap,
        time_range: tuple[TimeValue, TimeValue],
        theme: str,
        width: int,
        height: int,
        timezone: Optional[str],
        cancel_event: Optional[threading.Event],
    ):
        self.client = client
        self.dashboard_uid = dashboard_uid
        self.slug = slug
        self.variable_values = variable_values
        self.time_range = time_range
        self.theme = theme
        self.width = width
        self.height = height
        self.timezone = timezone
        self.cancel_event = cancel_event

    def __call__(self, instance: RenderablePanelInstance, index: int) -> RenderResult:
        # Scoped repeat values replace the run-wide selection for this panel only
        panel_values = merge_variable_values(
            self.variable_values, get_scoped_variable_overrides(instance.scoped_vars),
        )
        context = merge_scoped_vars(build_scoped_vars_from_value_map(panel_values), instance.scoped_vars)
        title = get_panel_title(instance.title_template, instance.panel_id, context)

        params = build_render_params(
            instance.panel_id,
            self.time_range,
            self.theme,
            self.width,
            self.height,
            self.timezone,
            build_variable_pairs(panel_values),
        )
        image = self.client.render_panel(
            self.dashboard_uid, self.slug, params, panel_id=instance.render_id,
        )
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RenderCancelled()
        return RenderResult(title=title, image=image)


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def generate_dashboard_report(
    client: GrafanaClient,
    dashboard_uid: Optional[str],
    settings: Optional[ReporterSettings] = None,
    manual_variables: Optional[VariableValueMap] = None,
    session_variables: Optional[Iterable[Union[DashboardTemplateVariable, Mapping[str, Any]]]] = None,
    time_range: Optional[RawTimeRange] = None,
    timezone: Optional[str] = None,
    output_dir: Union[str, Path] = ".",
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    canvas_factory: CanvasFactory = _default_canvas,
    now: Optional[datetime] = None,
) -> ReportOutcome:
    """
    Render every panel of a dashboard into one paginated PDF.

    Args:
        client: Grafana client used for the dashboard, renders and logo.
        dashboard_uid: Dashboard to report on.
        settings: Theme and layout; defaults when omitted.
        manual_variables: Explicit selections; win over everything else.
        session_variables: Live template variables of the acting session.
        time_range: Caller's range; falls back to the dashboard's, then now-6h..now.
            Resolved once to absolute epoch millis for every panel.
        timezone: Passed through to the render backend.
        output_dir: Directory for the finished file (created if missing).
        on_progress: Receives user-facing status messages in order.
        cancel_event: Set to abandon the run; nothing is saved.
        canvas_factory: Builds the document canvas for a target path.
        now: Run start; anchors relative time expressions and stamps the file name.

    Returns:
        ReportOutcome with status ``completed`` (the saved file plus any
        non-fatal findings as ``warnings``) or ``cancelled``.

    Raises:
        MissingDashboardContextError: If ``dashboard_uid`` is empty.
        DashboardFetchError: If the dashboard cannot be loaded.
        EmptyPanelSetError: If no renderable panel remains.
        RenderFailureError: If any panel render fails.
    """
    settings = settings or ReporterSettings()
    now = now or datetime.now()
    layout = settings.layout

    def progress(message: str) -> None:
        logger.info(f"[Report] {message}")
        if on_progress is not None:
            on_progress(message)

    def cancelled_outcome() -> ReportOutcome:
        progress(MSG_CANCELLED)
        return ReportOutcome(status="cancelled")

    if not dashboard_uid or not str(dashboard_uid).strip():
        raise MissingDashboardContextError(MSG_MISSING_DASHBOARD)

    # --- Dashboard ---
    progress(MSG_LOADING)
    response = client.fetch_dashboard(dashboard_uid)
    dashboard = response.dashboard
    if dashboard is None:
        raise MissingDashboardContextError(MSG_MISSING_DASHBOARD)
    if _cancelled(cancel_event):
        return cancelled_outcome()

    # --- Variables & panels ---
    variable_values = resolve_variable_values(
        session=get_session_variable_values(session_variables),
        defaults=get_dashboard_template_variable_values(dashboard),
        manual=manual_variables,
    )
    findings: list[ProcessingError] = validate_panel_tree(dashboard.panels or [])
    instances = flatten_panels(group_panels_by_rows(dashboard.panels), variable_values)
    if not instances:
        raise EmptyPanelSetError(MSG_NO_PANELS)

    total = len(instances)
    progress(f"Found {total} panels, rendering screenshots...")

    # --- Time range, theme, logo ---
    resolved_range = resolve_time_range(time_range, dashboard.time, now=now, tz_name=timezone)
    theme = resolve_theme_preference(settings.theme_preference, client.connection.user_theme)
    logo = None
    if layout.logo.enabled:
        logo = load_logo_asset(layout.logo.url, fetch=client.fetch_bytes, findings=findings)
    slug = (response.meta.slug if response.meta else None) or slugify(dashboard.title)

    # --- Render ---
    job = _RenderJob(
        client=client,
        dashboard_uid=dashboard_uid,
        slug=slug,
        variable_values=variable_values,
        time_range=resolved_range,
        theme=theme,
        width=layout.panels.width,
        height=layout.panels.height,
        timezone=timezone,
        cancel_event=cancel_event,
    )

    def on_rendered(index: int, result: RenderResult) -> None:
        progress(f"Rendered panel {index + 1}/{total}: {result.title}")

    try:
        results = run_with_concurrency(
            instances,
            layout.render_concurrency,
            job,
            cancel_event=cancel_event,
            on_complete=on_rendered,
        )
    except RenderCancelled:
        return cancelled_outcome()

    if _cancelled(cancel_event):
        return cancelled_outcome()

    # --- Compose & save ---
    progress(MSG_COMPOSING)
    output_path = Path(output_dir)
    file_name = build_file_name(dashboard.title, now)
    file_path = output_path / file_name
    doc = canvas_factory(file_path, layout.orientation, dashboard.title)
    page_count = compose_pdf(results, layout, doc, logo)

    if _cancelled(cancel_event):
        return cancelled_outcome()

    progress(MSG_SAVING)
    output_path.mkdir(parents=True, exist_ok=True)
    doc.save()
    logger.info(f"[PDF] Generated report: {file_path}")
    progress(MSG_READY)

    return ReportOutcome(
        status="completed",
        file_name=file_name,
        file_path=file_path,
        panel_count=total,
        page_count=page_count,
        warnings=[finding.to_dict() for finding in findings],
    )
