"""
Tests for the cross-batch duplicate history.

Covers:
- Text normalization
- Repeat detection per category and subcategory
- Bounded size and clearing
- Configuration errors
"""

import pytest

from punchline.services.duplicate_history import DuplicateHistory, normalize_text
from punchline.services.session_store import CaptionSession
from punchline.utils.errors import ConfigurationError


LINE = "Honestly my cake collapsed and then the candles survived."


class TestNormalization:
    """Test text normalization."""

    def test_lowercase_and_punctuation(self):
        assert normalize_text("Honestly, my CAKE collapsed!!") == "honestly my cake collapsed"

    def test_whitespace_collapsed(self):
        assert normalize_text("  my   cake \n collapsed ") == "my cake collapsed"

    def test_empty(self):
        assert normalize_text("") == ""
        assert normalize_text(None) == ""


class TestRepeatDetection:
    """Test Jaccard matching against remembered lines."""

    def test_exact_repeat_flagged(self):
        history = DuplicateHistory()
        history.add([LINE], "Celebrations", "Birthday")
        assert history.find_duplicates([LINE, "Something else entirely happened today."], "Celebrations", "Birthday") == [0]

    def test_punctuation_and_case_ignored(self):
        history = DuplicateHistory()
        history.add([LINE], "Celebrations", "Birthday")
        assert history.is_duplicate("honestly, my cake collapsed and then the candles survived", "celebrations", "birthday")

    def test_below_threshold_not_flagged(self):
        history = DuplicateHistory()
        history.add([LINE], "Celebrations", "Birthday")
        assert not history.is_duplicate(
            "Honestly my cake collapsed and then the candles survived plot twist included",
            "Celebrations",
            "Birthday",
        )

    def test_other_subcategory_ignored(self):
        history = DuplicateHistory()
        history.add([LINE], "Celebrations", "Wedding")
        assert history.find_duplicates([LINE], "Celebrations", "Birthday") == []

    def test_empty_history(self):
        assert DuplicateHistory().find_duplicates([LINE]) == []


class TestBounds:
    """Test size limits and clearing."""

    def test_oldest_entries_dropped(self):
        history = DuplicateHistory(max_entries=2)
        history.add(["first line about cake", "second line about candles", "third line about naps"])
        assert len(history) == 2
        assert not history.is_duplicate("first line about cake")
        assert history.is_duplicate("third line about naps")

    def test_blank_lines_not_recorded(self):
        history = DuplicateHistory()
        history.add(["", "   ", "..."])
        assert len(history) == 0

    def test_clear(self):
        history = DuplicateHistory()
        history.add([LINE])
        history.clear()
        assert len(history) == 0
        assert history.status()["entries"] == 0

    def test_default_size(self):
        assert DuplicateHistory().status()["max_entries"] == 200

    def test_invalid_size_raises(self):
        with pytest.raises(ConfigurationError):
            DuplicateHistory(max_entries=0)

    def test_invalid_threshold_raises(self):
        with pytest.raises(ConfigurationError):
            DuplicateHistory(threshold=1.5)


class TestSessionHistory:
    """Each session owns its own history."""

    def test_sessions_do_not_share_history(self):
        a, b = CaptionSession(), CaptionSession()
        a.history.add([LINE])
        assert len(a.history) == 1
        assert len(b.history) == 0
