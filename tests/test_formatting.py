"""Tests for the text helpers shared by card builders."""

import math

import pytest

from formatting import (
    escape_xml,
    fmt_minutes,
    fmt_number,
    fmt_percent,
    fmt_seconds,
    human_bytes,
    round_half_up,
)


class TestEscapeXml:
    def test_escapes_all_five_characters(self):
        assert escape_xml("<script>&\"'") == "&lt;script&gt;&amp;&quot;&apos;"

    def test_none_is_empty(self):
        assert escape_xml(None) == ""

    def test_non_strings_are_stringified(self):
        assert escape_xml(42) == "42"

    def test_xml_invalid_characters_are_dropped(self):
        assert escape_xml("Vim\x1b[31m\x00") == "Vim[31m"
        assert escape_xml("a\ud800b\uffff") == "ab"

    def test_tab_and_newline_survive(self):
        assert escape_xml("a\tb\nc") == "a\tb\nc"


class TestNumbers:
    def test_thousands_separator(self):
        assert fmt_number(1234567) == "1,234,567"

    @pytest.mark.parametrize("value", [None, float("nan"), "x"])
    def test_missing_values_print_zero(self, value):
        assert fmt_number(value) == "0"

    def test_percent_two_decimals(self):
        assert fmt_percent(12.3456) == "12.35%"
        assert fmt_percent(75) == "75.00%"
        assert fmt_percent(math.inf) == "0.00%"

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2


class TestHumanBytes:
    def test_units(self):
        assert human_bytes(512) == "512 B"
        assert human_bytes(2048) == "2.0 KB"
        assert human_bytes(3 * 1024 * 1024) == "3.0 MB"


class TestDurations:
    def test_minutes_only(self):
        assert fmt_minutes(45) == "45m"

    def test_whole_hours(self):
        assert fmt_minutes(120) == "2h"

    def test_hours_and_minutes(self):
        assert fmt_minutes(125) == "2h 5m"

    def test_seconds_round_to_nearest_minute(self):
        assert fmt_seconds(90) == "2m"
        assert fmt_seconds(3600 + 29) == "1h"
        assert fmt_seconds(None) == "0m"
