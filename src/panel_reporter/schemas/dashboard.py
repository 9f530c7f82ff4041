"""
Dashboard definition schemas.

Mirrors the subset of the Grafana dashboard JSON the report pipeline
consumes: the panel list (legacy or current row shape), the templating
variables with their defaults, and the dashboard time range.

Everything here is permissive (unknown keys are ignored, variable values
stay ``Any``) because variable shapes differ per variable type and
Grafana version; normalization happens in ``tools/variable_resolver.py``.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from panel_reporter.config.constants import ROW_PANEL_TYPE
from panel_reporter.schemas.variables import ScopedVariable

PanelId = Union[int, str]


# ---------------------------------------------------------------------------
# Panels
# ---------------------------------------------------------------------------


class PanelModel(BaseModel):
    """A dashboard panel or row, with optional nested children."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[PanelId] = None
    title: Optional[str] = None
    type: Optional[str] = None
    repeat: Optional[str] = None
    collapsed: Optional[bool] = None
    scoped_vars: Optional[dict[str, ScopedVariable]] = Field(default=None, alias="scopedVars")
    panels: Optional[list[PanelModel]] = None
    row_panel_id: Optional[PanelId] = Field(default=None, alias="rowPanelId")

    @property
    def is_row(self) -> bool:
        return self.type == ROW_PANEL_TYPE


# ---------------------------------------------------------------------------
# Templating
# ---------------------------------------------------------------------------


class VariableCurrent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: Any = None
    text: Any = None


class VariableOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: Any = None
    text: Any = None
    selected: bool = False


class DashboardTemplateVariable(BaseModel):
    """A declared template variable with its current selection and options."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    type: Optional[str] = None
    current: Optional[VariableCurrent] = None
    options: list[VariableOption] = Field(default_factory=list)
    include_all: Optional[bool] = Field(default=None, alias="includeAll")
    multi: Optional[bool] = None


class DashboardTemplating(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    variables: list[DashboardTemplateVariable] = Field(default_factory=list, alias="list")


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class RawTimeRange(BaseModel):
    """Time range as stored on a dashboard: epoch millis or relative expressions."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    time_from: Any = Field(default=None, alias="from")
    time_to: Any = Field(default=None, alias="to")


class DashboardModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: Optional[str] = None
    title: Optional[str] = None
    panels: list[PanelModel] = Field(default_factory=list)
    templating: Optional[DashboardTemplating] = None
    time: Optional[RawTimeRange] = None


class DashboardMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    slug: Optional[str] = None


class DashboardApiResponse(BaseModel):
    """Payload of ``GET /api/dashboards/uid/{uid}``."""

    model_config = ConfigDict(extra="ignore")

    dashboard: Optional[DashboardModel] = None
    meta: Optional[DashboardMeta] = None


PanelModel.model_rebuild()
