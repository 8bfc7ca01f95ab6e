"""Tests for activity schedule hints."""

import pytest

from extract.activities import extract_activities


class TestExtractActivities:
    """Test extract_activities."""

    def test_keyword_with_day_and_time(self):
        """Test a keyword is paired with the first weekday and time range."""
        hints = extract_activities("Marnie has climbing on Tuesday 4:00-5:30 PM at the gym")

        assert len(hints) == 1
        hint = hints[0]
        assert hint.type == "climbing"
        assert hint.name == "climbing"
        assert hint.day == "Tuesday"
        assert hint.time_range == "4:00-5:30 PM"

    def test_positional_pairing_per_category(self):
        """Test the i-th keyword of a category takes the i-th day and range."""
        text = "Tennis Monday 3:00 to 4:00, tennis again Thursday 5:00 to 6:00"
        hints = extract_activities(text)

        assert [(h.type, h.day, h.time_range) for h in hints] == [
            ("tennis", "Monday", "3:00 to 4:00"),
            ("tennis", "Thursday", "5:00 to 6:00"),
        ]

    def test_multiple_categories(self):
        """Test several categories in one text."""
        hints = extract_activities("Swimming and piano this week")
        assert {h.type for h in hints} == {"swimming", "music"}

    def test_missing_schedule_tokens(self):
        """Test hints without a weekday or range keep None."""
        hints = extract_activities("ballet recital")
        assert hints[0].type == "dance"
        assert hints[0].day is None
        assert hints[0].time_range is None

    def test_whole_words_only(self):
        """Test keywords inside longer words are not matched."""
        assert extract_activities("the party was smart") == []

    @pytest.mark.parametrize("text", ["", None, "nothing to see", "\ufffd\ufffd", 3.14])
    def test_never_raises(self, text):
        """Test garbage input yields an empty list."""
        assert extract_activities(text) == []
