"""Tests for date normalization and week helpers."""

from datetime import date, datetime

import pytest

from extract.dates import extract_dates, normalize_date, saturday_of_week, week_bounds, week_start


class TestNormalizeDate:
    """Test normalize_date."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("03/15/2025", "2025-03-15"),
            ("3/5/2025", "2025-03-05"),
            ("03-15-2025", "2025-03-15"),
            ("03/15/25", "2025-03-15"),
            ("March 15, 2025", "2025-03-15"),
            ("Mar 15 2025", "2025-03-15"),
            ("Sept. 3rd, 2025", "2025-09-03"),
            ("15 March 2025", "2025-03-15"),
            ("1st Feb 2026", "2026-02-01"),
        ],
    )
    def test_grammars(self, value, expected):
        """Test all three grammars produce canonical dates."""
        assert normalize_date(value) == expected

    def test_canonical_is_unchanged(self):
        """Test an ISO date normalizes to itself."""
        assert normalize_date("2025-03-15") == "2025-03-15"
        assert normalize_date(normalize_date("March 15, 2025")) == "2025-03-15"

    def test_numeric_is_month_first(self):
        """Test ambiguous numeric dates are read month-first."""
        assert normalize_date("04/05/2025") == "2025-04-05"

    def test_date_objects(self):
        """Test date and datetime inputs."""
        assert normalize_date(date(2025, 6, 1)) == "2025-06-01"
        assert normalize_date(datetime(2025, 6, 1, 14, 30)) == "2025-06-01"

    @pytest.mark.parametrize(
        "value",
        [None, "", "   ", "garbage", "02/30/2025", "13/01/2025", "2025-02-30", "Smarch 5, 2025", "March 15", 42],
    )
    def test_invalid_returns_none(self, value):
        """Test unparseable or impossible dates yield None instead of raising."""
        assert normalize_date(value) is None


class TestExtractDates:
    """Test extract_dates."""

    def test_collects_all_grammars(self):
        """Test dates from different grammars are merged, de-duplicated and sorted."""
        text = "Depart June 1, 2025 and return 06/10/2025. Confirmed again for 1 June 2025."
        assert extract_dates(text) == ["2025-06-01", "2025-06-10"]

    def test_skips_impossible_dates(self):
        """Test matched-but-invalid dates are dropped."""
        assert extract_dates("Due 02/30/2025 or 03/01/2025") == ["2025-03-01"]

    def test_empty(self):
        """Test text without dates."""
        assert extract_dates("") == []
        assert extract_dates("no dates here") == []


class TestWeekHelpers:
    """Test Monday-anchored week helpers."""

    def test_week_start_on_monday(self):
        assert week_start(date(2025, 1, 6)) == date(2025, 1, 6)

    def test_week_start_mid_week(self):
        assert week_start(date(2025, 1, 9)) == date(2025, 1, 6)
        assert week_start(date(2025, 1, 12)) == date(2025, 1, 6)

    def test_week_bounds(self):
        assert week_bounds(date(2025, 1, 8)) == (date(2025, 1, 6), date(2025, 1, 12))

    def test_saturday_of_week(self):
        assert saturday_of_week(date(2025, 1, 6)) == date(2025, 1, 11)

    def test_defaults_to_current_week(self):
        monday = week_start()
        assert monday.weekday() == 0
        assert monday <= date.today()
