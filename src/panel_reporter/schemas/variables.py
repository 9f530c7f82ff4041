"""
Template variable value schemas.

VariableValue is one selected value of a template variable; a
VariableValueMap holds every selected value per variable name, in
insertion order (the order drives render order). ScopedVariable is the
value/text binding in effect at one point of the panel tree.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict


class VariableValue(BaseModel):
    """A single selected value of a template variable."""

    model_config = ConfigDict(frozen=True)

    value: str
    text: Optional[str] = None

    @property
    def display_text(self) -> str:
        return self.text if self.text is not None else self.value


VariableValueMap = dict[str, list[VariableValue]]
"""Variable name -> ordered selected values (multi-select allowed)."""


class ScopedVariable(BaseModel):
    """
    A variable binding attached to a panel or repeat iteration.

    ``value`` is a string for single selections and a list of strings for
    multi-selections (raw dashboard JSON may also carry numbers); ``text``
    is the display form used in titles.
    """

    model_config = ConfigDict(frozen=True)

    value: Any = None
    text: Any = None


ScopedVariableContext = Mapping[str, ScopedVariable]
"""Read-only mapping of variable name -> binding at one tree depth."""

EMPTY_SCOPE: ScopedVariableContext = MappingProxyType({})


def merge_scoped_vars(
    parent: Optional[ScopedVariableContext],
    child: Optional[Mapping[str, ScopedVariable]],
) -> ScopedVariableContext:
    """Return a new read-only scope where ``child`` entries override ``parent``."""
    if not child:
        return parent if parent is not None else EMPTY_SCOPE
    if not parent:
        return MappingProxyType(dict(child))
    return MappingProxyType({**parent, **child})


def build_scoped_var_override(name: str, entry: VariableValue) -> dict[str, ScopedVariable]:
    """Scope entry binding ``name`` to a single repeat value."""
    return {name: ScopedVariable(value=entry.value, text=entry.display_text)}
