"""
Panel title interpolation.

Substitutes template variables in panel titles using their display text:
``$name``, ``${name}``, ``${name:format}`` and the legacy ``[[name]]``.
Unknown variables are left as written.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

from panel_reporter.schemas.dashboard import PanelId
from panel_reporter.schemas.variables import ScopedVariable

_VARIABLE_PATTERN = re.compile(
    r"\$(\w+)|\$\{(\w+)(?::[^}]*)?\}|\[\[(\w+)(?::[^\]]*)?\]\]"
)


def _display_text(variable: ScopedVariable) -> str:
    text = variable.text if variable.text not in (None, "") else variable.value
    if isinstance(text, (list, tuple)):
        return ", ".join(str(t) for t in text)
    return "" if text is None else str(text)


def interpolate_title(template: str, context: Optional[Mapping[str, ScopedVariable]]) -> str:
    if not context:
        return template

    def _replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2) or match.group(3)
        variable = context.get(name)
        if variable is None:
            return match.group(0)
        return _display_text(variable)

    return _VARIABLE_PATTERN.sub(_replace, template)


def get_panel_title(
    title_template: Optional[str],
    panel_id: Optional[PanelId],
    context: Optional[Mapping[str, ScopedVariable]] = None,
) -> str:
    """Resolved title, falling back to the raw template, then ``"Panel <id>"``."""
    fallback = f"Panel {panel_id if panel_id is not None else ''}".strip() or "Panel"
    base_title = title_template if title_template is not None else fallback
    resolved = interpolate_title(base_title, context).strip()
    return resolved or base_title
