"""
Tests for the Tag Sanitizer.

Covers:
- Known phrase mappings and their alternatives
- Pattern matches with generic alternatives
- List and TagSet splitting
- Live input validation
"""

from punchline.models.caption import TagSet
from punchline.services.tag_classifier import classify_tags
from punchline.services.tag_sanitizer import (
    GENERIC_ALTERNATIVES,
    PATTERN_REASON,
    sanitize_tag,
    sanitize_tag_set,
    sanitize_tags,
    validate_tag_input,
)


class TestSanitizeTag:
    """Test single tag checks."""

    def test_safe_tag(self):
        assert sanitize_tag("Jesse") is None
        assert sanitize_tag("old") is None

    def test_known_phrase(self):
        suggestion = sanitize_tag("Runs Like A Girl")
        assert suggestion.original_tag == "Runs Like A Girl"
        assert "clumsy sprint" in suggestion.alternatives
        assert '"runs like a girl"' in suggestion.reason

    def test_phrase_inside_longer_tag(self):
        suggestion = sanitize_tag("total redneck energy")
        assert suggestion is not None
        assert "country" in suggestion.alternatives

    def test_self_harm_phrase(self):
        assert "give up" in sanitize_tag("kill yourself").alternatives

    def test_pattern_match(self):
        suggestion = sanitize_tag("hurt myself laughing")
        assert suggestion.alternatives == GENERIC_ALTERNATIVES
        assert suggestion.reason == PATTERN_REASON

    def test_pattern_is_word_bounded(self):
        assert sanitize_tag("crackers") is None
        assert sanitize_tag("meth addict") is not None

    def test_blank_tag(self):
        assert sanitize_tag("   ") is None


class TestSanitizeLists:
    """Test batch splitting."""

    def test_order_kept(self):
        safe, suggestions = sanitize_tags(["cake", "ghetto", "party", "trailer trash"])
        assert safe == ["cake", "party"]
        assert [s.original_tag for s in suggestions] == ["ghetto", "trailer trash"]

    def test_tag_set_split(self):
        tags = classify_tags('"Jesse", @dumb blonde, old, suicide')
        cleaned, suggestions = sanitize_tag_set(tags)
        assert cleaned == TagSet(hard=("Jesse",), soft=("old",))
        assert {s.original_tag for s in suggestions} == {"dumb blonde", "suicide"}

    def test_clean_set_untouched(self):
        tags = TagSet(hard=("Jesse",), soft=("old",))
        cleaned, suggestions = sanitize_tag_set(tags)
        assert cleaned == tags
        assert suggestions == []

    def test_suggestion_to_dict(self):
        payload = sanitize_tag("redneck").to_dict()
        assert payload["original_tag"] == "redneck"
        assert payload["alternatives"] == ["rural", "country", "down-to-earth", "simple"]


class TestValidateInput:
    """Test live input validation."""

    def test_valid(self):
        assert validate_tag_input("birthday") == {"is_valid": True}

    def test_invalid(self):
        result = validate_tag_input("want to die")
        assert result["is_valid"] is False
        assert "exhausted" in result["suggestions"]
        assert result["warning"]
