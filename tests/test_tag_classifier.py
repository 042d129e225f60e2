"""
Tests for the Tag Classifier.

Covers:
- Hard vs soft split (quotes, @ sigil, bare words)
- Curly quote normalization and empty token handling
- Hard/soft disjointness
- Soft tag leak detection and stripping
"""

from punchline.models.caption import TagSet
from punchline.services.tag_classifier import (
    classify_tag_list,
    classify_tags,
    find_soft_tag_leaks,
    strip_soft_tags,
)


class TestClassification:
    """Test hard/soft tag classification."""

    def test_quoted_and_sigil_tokens_are_hard(self):
        tags = classify_tags('"Jesse", @Mike, old, So Drunk')
        assert tags.hard == ("Jesse", "Mike")
        assert tags.soft == ("old", "so drunk")

    def test_single_quoted_jesse_is_hard(self):
        """A lone quoted name is a hard tag with casing kept."""
        tags = classify_tags('"Jesse"')
        assert tags.hard == ("Jesse",)
        assert tags.soft == ()

    def test_curly_quotes_normalized(self):
        tags = classify_tags("“Jesse”, ‘Big Al’")
        assert tags.hard == ("Jesse", "Big Al")

    def test_empty_tokens_dropped(self):
        tags = classify_tags("old, , ,funny,   ")
        assert tags.soft == ("old", "funny")

    def test_blank_input_is_empty(self):
        assert classify_tags("").is_empty
        assert classify_tags("   ").is_empty

    def test_soft_duplicate_of_hard_dropped(self):
        tags = classify_tags('"Jesse", jesse, old, OLD')
        assert tags.hard == ("Jesse",)
        assert tags.soft == ("old",)

    def test_pure_function(self):
        raw = '@Mike, "Jesse", tired'
        assert classify_tags(raw) == classify_tags(raw)

    def test_classify_tag_list(self):
        tags = classify_tag_list(['"Jesse"', "@Mike", "lazy", ""])
        assert tags == TagSet(hard=("Jesse", "Mike"), soft=("lazy",))

    def test_merge_keeps_sets_disjoint(self):
        merged = TagSet.from_lists(["Jesse"], ["old"]).merge(classify_tags("jesse, @Old"))
        assert "old" not in merged.soft
        assert merged.hard == ("Jesse", "Old")


class TestSoftTagGuard:
    """Test soft tag leak detection and removal."""

    def test_leak_detection_is_word_bounded(self):
        assert find_soft_tag_leaks("Golden hour hits different", ["old"]) == []
        assert find_soft_tag_leaks("I feel so OLD today", ["old"]) == ["old"]

    def test_strip_removes_every_echo(self):
        text = strip_soft_tags("He is old and proud of being old", ["old"])
        assert find_soft_tag_leaks(text, ["old"]) == []
        assert text == "He is and proud of being"

    def test_strip_longest_tag_first(self):
        text = strip_soft_tags("Jesse is so drunk tonight", ["drunk", "so drunk"])
        assert text == "Jesse is tonight"

    def test_intensifier_goes_with_tag(self):
        text = strip_soft_tags("Blowing out candles is my cardio and somehow I feel so old", ["old"])
        assert text == "Blowing out candles is my cardio and somehow I feel"

    def test_no_placeholder_word_left(self):
        text = strip_soft_tags("My old cake is my cardio.", ["old"])
        assert text == "My cake is my cardio."

    def test_protected_phrase_kept(self):
        text = strip_soft_tags("Old Tom is old", ["old"], protected=["Old Tom"])
        assert text == "Old Tom is"

    def test_several_soft_tags(self):
        text = strip_soft_tags("that is old", ["old", "that"])
        assert find_soft_tag_leaks(text, ["old", "that"]) == []
        assert text == "is"
