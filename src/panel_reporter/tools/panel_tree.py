"""
Panel Tree Normalizer

Grafana <= 12.1 nests row children inline (or emits them as the panels
immediately following an expanded row); Grafana >= 12.2 emits them as flat
siblings that point back at their row via ``rowPanelId``. Both shapes are
normalized into one row-grouped tree so downstream code can treat
``row.panels`` uniformly.

Pure functions, no I/O. The input list is never mutated.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from panel_reporter.exceptions import ErrorSeverity, ProcessingError
from panel_reporter.schemas.dashboard import PanelId, PanelModel

logger = logging.getLogger(__name__)


def _key(value: Optional[PanelId]) -> Optional[str]:
    return str(value) if value is not None else None


def validate_panel_tree(panels: Iterable[Optional[PanelModel]]) -> list[ProcessingError]:
    """
    Report row ids that occur more than once in a raw panel list.

    Only the first occurrence is used as the target of ``rowPanelId``
    back-references; later rows with the same id keep their own embedded
    children but never receive flat siblings.
    """
    seen: dict[str, int] = {}
    findings: list[ProcessingError] = []

    for index, panel in enumerate(panels):
        if panel is None or not panel.is_row:
            continue
        key = _key(panel.id)
        if key is None:
            continue
        if key in seen:
            findings.append(ProcessingError(
                source=f"row:{key}",
                error_type="DUPLICATE_ROW_ID",
                message=(
                    f"Row id {key} appears more than once (positions "
                    f"{seen[key]} and {index}); using the first occurrence"
                ),
                severity=ErrorSeverity.WARNING,
                context={"row_id": key, "first_index": seen[key], "duplicate_index": index},
            ))
        else:
            seen[key] = index

    return findings


def group_panels_by_rows(panels: Optional[list[Optional[PanelModel]]]) -> list[PanelModel]:
    """
    Normalize a fetched panel list into a row-grouped tree.

    Args:
        panels: Panels as returned by the dashboard API (either shape).

    Returns:
        Top-level panels; every row carries a (possibly empty) ``panels`` list.
    """
    copies = [p.model_copy(deep=True) for p in (panels or []) if p is not None]

    for finding in validate_panel_tree(copies):
        logger.warning(f"[Normalize] {finding.message}")

    row_lookup: dict[str, PanelModel] = {}
    for panel in copies:
        if not panel.is_row:
            continue
        if panel.panels is None:
            panel.panels = []
        key = _key(panel.id)
        if key is not None and key not in row_lookup:
            row_lookup[key] = panel

    result: list[PanelModel] = []
    active_row: Optional[PanelModel] = None

    for panel in copies:
        if panel.is_row:
            # Only an explicitly expanded row absorbs the flat panels after it.
            active_row = panel if panel.collapsed is False else None
            result.append(panel)
            continue

        parent_key = _key(panel.row_panel_id)
        if parent_key is not None and parent_key in row_lookup:
            row_lookup[parent_key].panels.append(panel)
            continue

        if active_row is not None:
            active_row.panels.append(panel)
            continue

        result.append(panel)

    logger.debug(
        f"[Normalize] {len(copies)} raw panels -> {len(result)} top-level nodes "
        f"({len(row_lookup)} rows)"
    )
    return result
