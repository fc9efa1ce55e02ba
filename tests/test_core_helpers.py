"""Tests for core helpers module."""

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from helprr.core.exceptions import DetectionError
from helprr.core.helpers import (
    _get_pyproject_attr,
    bounded_append,
    parse_bool,
    parse_upstream_datetime,
    signature,
    utc_now,
)


class TestGetPyprojectAttr:
    """Tests for _get_pyproject_attr function."""

    def test_returns_default_on_exception(self):
        """Should return default when pyproject.toml cannot be read."""
        with patch("helprr.core.helpers._pyproject_data", None):
            with patch("builtins.open", side_effect=FileNotFoundError):
                assert _get_pyproject_attr("name", "default_name") == "default_name"

    def test_returns_default_for_missing_key(self):
        """Should return default for keys not in [project]."""
        data = {"project": {"name": "helprr"}}
        with patch("helprr.core.helpers._pyproject_data", data):
            assert _get_pyproject_attr("missing", "fallback") == "fallback"

    def test_reads_project_name(self):
        data = {"project": {"name": "helprr"}}
        with patch("helprr.core.helpers._pyproject_data", data):
            assert _get_pyproject_attr("name") == "helprr"


class TestUtcNow:
    def test_is_timezone_aware(self):
        assert utc_now().tzinfo is not None


class TestParseUpstreamDatetime:
    """Tests for parse_upstream_datetime function."""

    def test_parses_zulu_suffix(self):
        """Should treat a trailing Z as UTC."""
        assert parse_upstream_datetime("2024-06-01T20:00:00Z") == datetime(
            2024, 6, 1, 20, 0, tzinfo=UTC
        )

    def test_naive_assumed_utc(self):
        """Should assume UTC for values without an offset."""
        parsed = parse_upstream_datetime("2024-06-01T20:00:00")

        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 6, 1, 20, 0, tzinfo=UTC)

    def test_keeps_offset(self):
        parsed = parse_upstream_datetime("2024-06-01T22:00:00+02:00")

        assert parsed.utcoffset() == timedelta(hours=2)
        assert parsed == datetime(2024, 6, 1, 20, 0, tzinfo=UTC)

    def test_truncates_seven_fractional_digits(self):
        """Should accept the seven-digit fractions Jellyfin emits."""
        parsed = parse_upstream_datetime("2024-06-01T20:00:00.1234567Z")

        assert parsed.microsecond == 123456
        assert parsed.tzinfo is not None

    def test_fraction_with_offset(self):
        parsed = parse_upstream_datetime("2024-06-01T20:00:00.5+00:00")

        assert parsed.microsecond == 500000
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 1717272000])
    def test_rejects_invalid(self, value):
        """Should raise DetectionError for missing or malformed values."""
        with pytest.raises(DetectionError):
            parse_upstream_datetime(value)


class TestSignature:
    """Tests for signature function."""

    def test_stable(self):
        assert signature("sonarr", "IndexerCheck", "warning", "No indexers") == signature(
            "sonarr", "IndexerCheck", "warning", "No indexers"
        )

    def test_differs_per_part(self):
        assert signature("sonarr", "a", "b") != signature("radarr", "a", "b")

    def test_none_treated_as_empty(self):
        assert signature("x", None) == signature("x", "")


class TestBoundedAppend:
    """Tests for bounded_append function."""

    def test_appends_in_order(self):
        assert bounded_append(["1", "2"], ["3"], 10) == ["1", "2", "3"]

    def test_keeps_newest_entries(self):
        """Should drop the oldest entries past the limit."""
        assert bounded_append(["1", "2", "3"], ["4", "5"], 3) == ["3", "4", "5"]

    def test_does_not_mutate_inputs(self):
        items = ["1"]
        new_items = ["2"]

        bounded_append(items, new_items, 1)

        assert items == ["1"]
        assert new_items == ["2"]


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "1", "YES", " on "])
    def test_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", ""])
    def test_falsy(self, value):
        assert parse_bool(value, default=True) is False

    def test_none_returns_default(self):
        assert parse_bool(None, default=True) is True
