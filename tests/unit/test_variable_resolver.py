"""
Template Variable Resolution Tests
Level 1: Pure function tests, no network, no file I/O.

Tests normalization of raw variable shapes, "All" handling, the
defaults/session/manual merge and the render query projections.
"""

from __future__ import annotations

import pytest

from panel_reporter.schemas.dashboard import DashboardModel, DashboardTemplateVariable
from panel_reporter.schemas.variables import ScopedVariable, VariableValue
from panel_reporter.tools.variable_resolver import (
    build_scoped_vars_from_value_map,
    build_variable_pairs,
    extract_variable_values,
    get_dashboard_template_variable_values,
    get_scoped_variable_overrides,
    get_session_variable_values,
    is_all_value,
    merge_variable_values,
    normalize_variable_entries,
    resolve_variable_values,
)
from tests.fixtures.conftest import values


# ---------------------------------------------------------------------------
# TestNormalizeVariableEntries
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestNormalizeVariableEntries:

    def test_mixed_structures(self):
        result = normalize_variable_entries(
            [{"value": "123"}, {"text": "abc"}, "raw", 42, None],
            ["text-123", "text-abc"],
        )
        assert result == [
            VariableValue(value="123", text="text-123"),
            VariableValue(value="abc", text="abc"),
            VariableValue(value="raw", text=None),
            VariableValue(value="42", text=None),
        ]

    def test_scalar_value_and_text(self):
        assert normalize_variable_entries("prod", "Production") == [
            VariableValue(value="prod", text="Production"),
        ]

    def test_missing_value_falls_back_to_text(self):
        assert normalize_variable_entries(None, "only-text") == [
            VariableValue(value="only-text", text="only-text"),
        ]

    def test_blank_entries_dropped(self):
        assert normalize_variable_entries(["", None, "x"]) == [VariableValue(value="x")]
        assert normalize_variable_entries(None) == []

    def test_numbers_and_booleans_stringified(self):
        result = normalize_variable_entries([3.0, 2.5, True])
        assert [e.value for e in result] == ["3", "2.5", "true"]


# ---------------------------------------------------------------------------
# TestAllValue
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestAllValue:

    @pytest.mark.parametrize("entry", [
        VariableValue(value="$__all"),
        VariableValue(value="__all"),
        VariableValue(value="$__ALL"),
        VariableValue(value="x", text="All"),
    ])
    def test_wildcards(self, entry):
        assert is_all_value(entry)

    def test_concrete_value(self):
        assert not is_all_value(VariableValue(value="web1", text="web1"))


# ---------------------------------------------------------------------------
# TestExtractVariableValues
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestExtractVariableValues:

    OPTIONS = [
        {"value": "$__all", "text": "All"},
        {"value": "web1", "text": "web1"},
        {"value": "web2", "text": "web2", "selected": True},
    ]

    def test_all_selection_expands_to_options(self):
        var = {"name": "host", "current": {"value": "$__all", "text": "All"}, "options": self.OPTIONS}
        assert [e.value for e in extract_variable_values(var)] == ["web1", "web2"]

    def test_current_selection_wins(self):
        var = {"name": "host", "current": {"value": ["web1"], "text": ["web1"]}, "options": self.OPTIONS}
        assert [e.value for e in extract_variable_values(var)] == ["web1"]

    def test_selected_options_without_current(self):
        var = {"name": "host", "options": self.OPTIONS}
        assert [e.value for e in extract_variable_values(var)] == ["web2"]

    def test_all_options_when_nothing_selected(self):
        var = {"name": "env", "options": [{"value": "a"}, {"value": "b"}]}
        assert [e.value for e in extract_variable_values(var)] == ["a", "b"]

    def test_accepts_model(self):
        var = DashboardTemplateVariable.model_validate({"name": "env", "current": {"value": "prod"}})
        assert extract_variable_values(var) == [VariableValue(value="prod")]


# ---------------------------------------------------------------------------
# TestVariableSources
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestVariableSources:

    def test_dashboard_defaults(self):
        dashboard = DashboardModel.model_validate({"templating": {"list": [
            {"name": "env", "current": {"value": "prod"}},
            {"name": "region", "options": [{"value": "eu"}, {"value": "us", "selected": True}]},
            {"current": {"value": "nameless"}},
        ]}})
        result = get_dashboard_template_variable_values(dashboard)
        assert list(result) == ["env", "region"]
        assert [e.value for e in result["region"]] == ["us"]

    def test_dashboard_without_templating(self):
        assert get_dashboard_template_variable_values(DashboardModel()) == {}
        assert get_dashboard_template_variable_values(None) == {}

    def test_session_skips_variables_without_current(self):
        result = get_session_variable_values([
            {"name": "env", "current": {"value": "staging"}},
            {"name": "region", "options": [{"value": "eu"}]},
        ])
        assert list(result) == ["env"]
        assert get_session_variable_values(None) == {}


# ---------------------------------------------------------------------------
# TestMergeVariableValues
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestMergeVariableValues:

    def test_override_replaces(self):
        merged = merge_variable_values(values(env=["prod"]), values(env=["staging"]))
        assert [e.value for e in merged["env"]] == ["staging"]

    def test_untouched_variables_kept(self):
        merged = merge_variable_values(values(env=["prod"], host=["a"]), values(env=["staging"]))
        assert [e.value for e in merged["host"]] == ["a"]

    def test_empty_override_clears(self):
        merged = merge_variable_values(values(env=["prod"]), {"env": []})
        assert merged["env"] == []

    def test_wildcards_filtered_from_mixed_override(self):
        merged = merge_variable_values({}, values(host=["$__all", "web1"]))
        assert [e.value for e in merged["host"]] == ["web1"]

    def test_wildcard_only_keeps_base(self):
        base = values(host=["web1", "web2"], env=["prod"])
        merged = merge_variable_values(base, values(host=["$__all"]))
        assert [e.value for e in merged["host"]] == ["web1", "web2"]
        assert [e.value for e in merged["env"]] == ["prod"]

    def test_wildcard_only_without_base_kept_verbatim(self):
        merged = merge_variable_values({}, values(host=["$__all"]))
        assert [e.value for e in merged["host"]] == ["$__all"]

    def test_base_not_mutated(self):
        base = values(env=["prod"])
        merge_variable_values(base, values(env=["staging"]))
        assert [e.value for e in base["env"]] == ["prod"]

    def test_precedence_manual_session_defaults(self):
        merged = resolve_variable_values(
            session=values(env=["staging"], host=["s1"]),
            defaults=values(env=["prod"], host=["d1"], region=["eu"]),
            manual=values(host=["m1"]),
        )
        assert {k: [e.value for e in v] for k, v in merged.items()} == {
            "env": ["staging"], "host": ["m1"], "region": ["eu"],
        }


# ---------------------------------------------------------------------------
# TestProjections
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestProjections:

    def test_variable_pairs_one_per_value(self):
        pairs = build_variable_pairs({
            "region": [VariableValue(value="us", text="US"), VariableValue(value="eu", text="EU")],
            "env": [VariableValue(value="prod")],
        })
        assert pairs == [("var-region", "us"), ("var-region", "eu"), ("var-env", "prod")]

    def test_scoped_vars_join_multi_text(self):
        scoped = build_scoped_vars_from_value_map({
            "region": [VariableValue(value="us", text="US"), VariableValue(value="eu", text="EU")],
            "env": [VariableValue(value="prod")],
            "empty": [],
        })
        assert scoped["region"] == ScopedVariable(value=["us", "eu"], text="US, EU")
        assert scoped["env"] == ScopedVariable(value="prod", text="prod")
        assert "empty" not in scoped

    def test_scoped_overrides_skip_internal_keys(self):
        overrides = get_scoped_variable_overrides({
            "iterator": ScopedVariable(value="a", text="A"),
            "__interval": ScopedVariable(value="1m"),
            "missing": None,
        })
        assert overrides == {"iterator": [VariableValue(value="a", text="A")]}
