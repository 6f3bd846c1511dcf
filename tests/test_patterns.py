"""Tests for reference detection, editor regexes and interval helpers."""

import pytest

from template_resolver import (
    compile_field_accessor,
    contains_search_filter,
    contains_variable,
    get_search_filter_scoped_var,
    get_variable_name,
)
from template_resolver.resolver import MISSING


class TestContainsVariable:
    def test_dollar_reference(self):
        assert contains_variable("metric{$env}", "env")

    def test_prefix_is_not_a_reference(self):
        assert not contains_variable("metric{$environment}", "env")
        assert not contains_variable("$envx", "env")

    def test_bracket_and_brace_forms(self):
        assert contains_variable("[[env:csv]]", "env")
        assert contains_variable("${env.field:json}", "env")

    def test_any_of_several_strings(self):
        assert contains_variable("static", None, "/$region-.*/", "region")

    def test_non_string_parts(self):
        assert contains_variable({"expr": "up{job=\"$job\"}"}, "job")

    def test_needs_a_name(self):
        assert not contains_variable("$env")


class TestVariableName:
    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("$env", "env"),
            ("[[env]]", "env"),
            ("[[env:csv]]", "env"),
            ("${env}", "env"),
            ("${env.a.b:json}", "env"),
            ("prefix $first and $second", "first"),
            ("none here", None),
            ("", None),
        ],
    )
    def test_first_reference(self, expression, expected):
        assert get_variable_name(expression) == expected


class TestSearchFilter:
    def test_scoped_var_with_filter(self):
        scoped = get_search_filter_scoped_var("label_values($__searchFilter)", "*", "ab")
        assert scoped == {"__searchFilter": {"value": "ab*", "text": ""}}

    def test_scoped_var_without_filter(self):
        scoped = get_search_filter_scoped_var("label_values($__searchFilter)", ".*")
        assert scoped == {"__searchFilter": {"value": ".*", "text": ""}}

    def test_query_without_reference(self):
        assert get_search_filter_scoped_var("label_values(job)", "*", "ab") == {}
        assert not contains_search_filter({"expr": "$__searchFilter"})


class TestFieldAccessor:
    def test_nested_path(self):
        accessor = compile_field_accessor("a.b[0].c")
        assert accessor({"a": {"b": [{"c": 3}]}}) == 3

    def test_attribute_access(self):
        from core import SystemValue

        accessor = compile_field_accessor("uid")
        assert accessor(SystemValue(name="Ops", uid="abc")) == "abc"

    def test_missing_step(self):
        accessor = compile_field_accessor("a.x")
        assert accessor({"a": {}}) is MISSING
        assert accessor(None) is MISSING


class TestEditorRegex:
    def test_plain_string_matches_whole_value(self):
        from dashvars.utilities.regex import string_to_regex

        regex = string_to_regex("eu-.*")
        assert regex.search("eu-1") is not None
        assert regex.search("xeu-1") is None

    def test_delimited_regex_with_flags(self):
        from dashvars.utilities.regex import string_to_regex

        regex = string_to_regex("/HOST-(\\d)/gi")
        assert regex.global_
        assert [m.group(1) for m in regex.find_all("host-1,HOST-2")] == ["1", "2"]

    def test_non_global_finds_first_match(self):
        from dashvars.utilities.regex import string_to_regex

        regex = string_to_regex("/(\\d)/")
        assert [m.group(1) for m in regex.find_all("1,2")] == ["1"]

    def test_javascript_named_groups(self):
        from dashvars.utilities.regex import string_to_regex

        regex = string_to_regex("/(?<text>[a-z]+)=(?<value>\\d+)/")
        match = regex.search("cpu=4")
        assert match.group("text") == "cpu"
        assert match.group("value") == "4"

    def test_invalid_regex(self):
        from dashvars.utilities.regex import string_to_regex

        with pytest.raises(ValueError):
            string_to_regex("/(/")


class TestIntervals:
    def test_interval_to_ms(self):
        from dashvars.utilities.intervals import interval_to_ms

        assert interval_to_ms("5m") == 300_000
        assert interval_to_ms("10") == 10_000
        assert interval_to_ms("1.5h") == 5_400_000

    def test_invalid_interval(self):
        from dashvars.utilities.intervals import interval_to_ms

        with pytest.raises(ValueError):
            interval_to_ms("abc")

    def test_seconds_to_hms(self):
        from dashvars.utilities.intervals import seconds_to_hms

        assert seconds_to_hms(600) == "10m"
        assert seconds_to_hms(86_400) == "1d"
        assert seconds_to_hms(0.5) == "500ms"

    def test_calculate_interval(self):
        from builders import time_range

        from dashvars.utilities.intervals import calculate_interval

        assert calculate_interval(time_range(0, 6), 30, "10s") == (600_000, "10m")

    def test_low_limit_wins(self):
        from builders import time_range

        from dashvars.utilities.intervals import calculate_interval

        assert calculate_interval(time_range(0, 1), 30, "5m") == (300_000, "5m")
