"""
Variable Resolution & Panel Flattener

Recursively expands repeated rows and panels into a flat, ordered render
queue. Each repeat iteration extends the inherited scope with the
iteration's value and appends ``clone<N>`` to the id suffix, so render ids
stay unique across nested repeats.

Pure functions, no I/O. Scopes are read-only mappings passed downward;
nothing is mutated in place.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from panel_reporter.config.constants import CLONE_SUFFIX
from panel_reporter.schemas.dashboard import PanelId, PanelModel
from panel_reporter.schemas.report_output import RenderablePanelInstance
from panel_reporter.schemas.variables import (
    EMPTY_SCOPE,
    ScopedVariableContext,
    VariableValue,
    VariableValueMap,
    build_scoped_var_override,
    merge_scoped_vars,
)

logger = logging.getLogger(__name__)

# (render_id, panel_id, scope, title_template)
_Emitted = tuple[PanelId, PanelId, ScopedVariableContext, Optional[str]]


def append_clone_suffix(parent_suffix: str, iteration_index: int) -> str:
    """Suffix for the 0-based ``iteration_index``-th repeat value (``clone1``...)."""
    return f"{parent_suffix}{CLONE_SUFFIX}{iteration_index + 1}"


def get_clone_id(panel_id: Optional[PanelId], suffix: str) -> Optional[PanelId]:
    if panel_id is None or not suffix:
        return panel_id
    return f"{panel_id}{suffix}"


def has_scoped_override(scope: ScopedVariableContext, variable_name: str) -> bool:
    return scope.get(variable_name) is not None


def _repeat_values(
    panel: PanelModel,
    scope: ScopedVariableContext,
    variable_values: VariableValueMap,
) -> Optional[list[VariableValue]]:
    """Values to expand over, or None when the node does not repeat here."""
    if not panel.repeat or has_scoped_override(scope, panel.repeat):
        return None
    return variable_values.get(panel.repeat) or []


def _expand(
    panels: Optional[list[Optional[PanelModel]]],
    variable_values: VariableValueMap,
    inherited: ScopedVariableContext,
    clone_suffix: str,
) -> Iterator[_Emitted]:
    for panel in panels or []:
        if panel is None:
            continue

        combined = merge_scoped_vars(inherited, panel.scoped_vars)
        repeat_values = _repeat_values(panel, combined, variable_values)

        if panel.is_row:
            if repeat_values is None:
                yield from _expand(panel.panels, variable_values, combined, clone_suffix)
                continue
            if not repeat_values:
                logger.warning(
                    f"[Flatten] Row {panel.id} repeats over '{panel.repeat}' "
                    f"which has no values; skipping"
                )
            for index, entry in enumerate(repeat_values):
                repeat_scope = merge_scoped_vars(combined, build_scoped_var_override(panel.repeat, entry))
                yield from _expand(
                    panel.panels, variable_values, repeat_scope,
                    append_clone_suffix(clone_suffix, index),
                )
            continue

        if repeat_values is None:
            if panel.id is not None:
                yield (get_clone_id(panel.id, clone_suffix), panel.id, combined, panel.title)
            yield from _expand(panel.panels, variable_values, combined, clone_suffix)
            continue

        if not repeat_values:
            logger.warning(
                f"[Flatten] Panel {panel.id} repeats over '{panel.repeat}' "
                f"which has no values; skipping"
            )
        for index, entry in enumerate(repeat_values):
            repeat_scope = merge_scoped_vars(combined, build_scoped_var_override(panel.repeat, entry))
            next_suffix = append_clone_suffix(clone_suffix, index)
            if panel.id is not None:
                yield (get_clone_id(panel.id, next_suffix), panel.id, repeat_scope, panel.title)
            yield from _expand(panel.panels, variable_values, repeat_scope, next_suffix)


def flatten_panels(
    panels: Optional[list[Optional[PanelModel]]],
    variable_values: VariableValueMap,
    inherited_scope: Optional[ScopedVariableContext] = None,
    clone_suffix: str = "",
) -> list[RenderablePanelInstance]:
    """
    Expand a normalized panel tree into the ordered render queue.

    Args:
        panels: Output of ``group_panels_by_rows``.
        variable_values: Resolved VariableValueMap (iteration order = render order).
        inherited_scope: Scope to start from (empty for a whole dashboard).
        clone_suffix: Suffix to start from (empty for a whole dashboard).

    Returns:
        Depth-first, document-ordered instances with unique ``render_id``s.
        Rows never produce an instance; panels without an id are dropped.
    """
    instances = [
        RenderablePanelInstance(
            render_id=render_id,
            panel_id=panel_id,
            scoped_vars=scope,
            title_template=title,
            order_index=index,
        )
        for index, (render_id, panel_id, scope, title) in enumerate(
            _expand(panels, variable_values, inherited_scope or EMPTY_SCOPE, clone_suffix)
        )
    ]
    logger.info(f"[Flatten] Expanded panel tree into {len(instances)} renderable panels")
    return instances
