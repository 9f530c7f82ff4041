"""
Variable Value Resolver

Template variable values arrive from three layers: the live session
selection, the dashboard-declared defaults, and manual overrides
(CLI flags / query params). Each layer uses heterogeneous shapes: scalar,
list, ``{value, text}`` object, list of such objects, or parallel
value/text lists. This module normalizes them into VariableValueMaps and
merges the layers with precedence manual > session > defaults, per
variable name.

Pure functions, no I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from panel_reporter.config.constants import (
    ALL_TEXT_TOKEN,
    ALL_VALUE_TOKENS,
    INTERNAL_SCOPED_VARS_ALLOWLIST,
    VARIABLE_QUERY_PREFIX,
)
from panel_reporter.schemas.dashboard import DashboardModel, DashboardTemplateVariable
from panel_reporter.schemas.variables import ScopedVariable, VariableValue, VariableValueMap

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _to_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _stringify(value: Any) -> str:
    """String form as Grafana would put it in a URL (``true``, ``3`` not ``3.0``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_variable_entries(value: Any, text: Any = None) -> list[VariableValue]:
    """
    Coerce a variable's value/text pair into an ordered list of VariableValues.

    Values and texts are paired by index up to the longer of the two.
    Blank entries (None / "") are dropped; a missing value falls back to
    the text at the same position.

    Example:
        normalize_variable_entries([{"value": "1"}, {"text": "b"}, "raw"], ["one"])
        -> [1/"one", b/"b", raw/None]
    """
    values = _to_list(value)
    texts = _to_list(text)
    normalized: list[VariableValue] = []

    for i in range(max(len(values), len(texts))):
        source = values[i] if i < len(values) else None
        text_candidate = texts[i] if i < len(texts) else None
        fallback_text = None if _is_blank(text_candidate) else _stringify(text_candidate)

        if source is None:
            source = text_candidate
        if _is_blank(source):
            continue

        if isinstance(source, Mapping):
            candidate_value = source.get("value")
            candidate_text = source.get("text")
            if not _is_blank(candidate_value):
                normalized.append(VariableValue(
                    value=_stringify(candidate_value),
                    text=_stringify(candidate_text) if not _is_blank(candidate_text) else fallback_text,
                ))
                continue
            if not _is_blank(candidate_text):
                normalized.append(VariableValue(
                    value=_stringify(candidate_text),
                    text=_stringify(candidate_text),
                ))
                continue

        normalized.append(VariableValue(value=_stringify(source), text=fallback_text))

    return normalized


@dataclass(frozen=True)
class NormalizedOption:
    entry: VariableValue
    selected: bool


def normalize_variable_options(options: Optional[Iterable[Any]]) -> list[NormalizedOption]:
    """Normalize a variable's declared option list, keeping the ``selected`` flag."""
    normalized: list[NormalizedOption] = []
    for option in options or []:
        if isinstance(option, Mapping):
            raw_value, raw_text, selected = option.get("value"), option.get("text"), option.get("selected")
        else:
            raw_value, raw_text, selected = option.value, option.text, option.selected

        source = raw_value if raw_value is not None else raw_text
        if _is_blank(source):
            continue
        normalized.append(NormalizedOption(
            entry=VariableValue(
                value=_stringify(source),
                text=_stringify(raw_text) if not _is_blank(raw_text) else None,
            ),
            selected=bool(selected),
        ))
    return normalized


def is_all_value(entry: VariableValue) -> bool:
    """True for the reserved "All" wildcard (``$__all`` / ``__all`` / text "All")."""
    value = entry.value.lower() if entry.value is not None else None
    text = entry.text.lower() if entry.text is not None else None
    return value in ALL_VALUE_TOKENS or text == ALL_TEXT_TOKEN


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _as_variable(variable: Union[DashboardTemplateVariable, Mapping[str, Any]]) -> DashboardTemplateVariable:
    if isinstance(variable, DashboardTemplateVariable):
        return variable
    return DashboardTemplateVariable.model_validate(dict(variable))


def extract_variable_values(
    variable: Union[DashboardTemplateVariable, Mapping[str, Any]],
) -> list[VariableValue]:
    """
    Effective values of one declared variable.

    An "All" selection expands to every declared option except wildcard
    options (the render backend cannot expand ``$__all`` itself). Otherwise
    the current selection wins, then options flagged ``selected``, then the
    full option list.
    """
    var = _as_variable(variable)
    current = normalize_variable_entries(
        var.current.value if var.current else None,
        var.current.text if var.current else None,
    )
    options = normalize_variable_options(var.options)

    if options and any(is_all_value(entry) for entry in current):
        without_all = [o.entry for o in options if not is_all_value(o.entry)]
        if without_all:
            return without_all

    if current:
        return current

    selected = [o.entry for o in options if o.selected]
    if selected:
        return selected

    return [o.entry for o in options]


def _collect(variables: Iterable[Union[DashboardTemplateVariable, Mapping[str, Any]]], require_current: bool) -> VariableValueMap:
    values: VariableValueMap = {}
    for raw in variables:
        var = _as_variable(raw)
        if not var.name:
            continue
        if require_current and var.current is None:
            continue
        normalized = extract_variable_values(var)
        if normalized:
            values[var.name] = normalized
    return values


def get_dashboard_template_variable_values(dashboard: Optional[DashboardModel]) -> VariableValueMap:
    """Defaults layer: values declared in the dashboard's templating list."""
    if dashboard is None or dashboard.templating is None:
        return {}
    return _collect(dashboard.templating.variables, require_current=False)


def get_session_variable_values(
    variables: Optional[Iterable[Union[DashboardTemplateVariable, Mapping[str, Any]]]],
) -> VariableValueMap:
    """Session layer: live selections; variables without a ``current`` are skipped."""
    return _collect(variables or [], require_current=True)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def merge_variable_values(
    base: VariableValueMap,
    overrides: Optional[VariableValueMap],
) -> VariableValueMap:
    """
    Merge ``overrides`` over ``base`` per variable name.

    - An empty override list clears the variable.
    - Wildcard entries are dropped from an override that has concrete values.
    - A wildcard-only override keeps the base's concrete values; with no
      concrete base it is kept verbatim (``$__all`` reaches the backend).

    Variables absent from ``overrides`` are untouched. Returns a new dict.
    """
    result: VariableValueMap = {name: list(entries) for name, entries in base.items()}
    if not overrides:
        return result

    for name, override_values in overrides.items():
        if not override_values:
            result[name] = []
            continue

        concrete = [entry for entry in override_values if not is_all_value(entry)]
        if concrete:
            result[name] = concrete
            continue

        if base.get(name):
            logger.debug(f"[Variables] Override for '{name}' is wildcard-only; keeping base values")
            result[name] = list(base[name])
            continue

        result[name] = list(override_values)

    return result


def resolve_variable_values(
    session: Optional[VariableValueMap] = None,
    defaults: Optional[VariableValueMap] = None,
    manual: Optional[VariableValueMap] = None,
) -> VariableValueMap:
    """Layer the three sources: manual > session > defaults."""
    merged = merge_variable_values(merge_variable_values(defaults or {}, session), manual)
    logger.info(
        f"[Variables] Resolved {len(merged)} variables "
        f"(defaults={len(defaults or {})}, session={len(session or {})}, manual={len(manual or {})})"
    )
    return merged


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def build_variable_pairs(values: VariableValueMap) -> list[tuple[str, str]]:
    """Ordered ``("var-<name>", value)`` query pairs, one per selected value."""
    return [
        (f"{VARIABLE_QUERY_PREFIX}{name}", entry.value)
        for name, entries in values.items()
        for entry in entries
    ]


def build_scoped_vars_from_value_map(values: Optional[VariableValueMap]) -> dict[str, ScopedVariable]:
    """Title-interpolation context; multi-value text renders as ``"a, b"``."""
    scoped: dict[str, ScopedVariable] = {}
    for name, entries in (values or {}).items():
        if not entries:
            continue
        value_list = [entry.value for entry in entries]
        text_list = [entry.display_text for entry in entries]
        scoped[name] = ScopedVariable(
            value=value_list[0] if len(value_list) == 1 else value_list,
            text=text_list[0] if len(text_list) == 1 else ", ".join(text_list),
        )
    return scoped


def get_scoped_variable_overrides(
    scoped_vars: Optional[Mapping[str, Optional[ScopedVariable]]],
) -> VariableValueMap:
    """
    Convert a panel's scoped vars back into a VariableValueMap.

    Internal ``__*`` entries are skipped unless they are repeat markers.
    """
    overrides: VariableValueMap = {}
    for key, scoped_var in (scoped_vars or {}).items():
        if scoped_var is None:
            continue
        if key.startswith("__") and key not in INTERNAL_SCOPED_VARS_ALLOWLIST:
            continue
        normalized = normalize_variable_entries(scoped_var.value, scoped_var.text)
        if normalized:
            overrides[key] = normalized
    return overrides
