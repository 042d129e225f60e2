"""
Tests for the Context Lexicon.

Covers:
- Topic resolution from category and subcategory
- Lexicon word detection
- Injection word selection around soft tags
- Contextual fallbacks and soft tag hints
"""

from punchline.services.context_lexicon import (
    CONTEXT_LEXICON,
    DEFAULT_TOPIC,
    contextual_fallbacks,
    find_lexicon_words,
    has_lexicon_word,
    injection_word,
    resolve_topic,
    select_contextual_words,
    soft_tag_hints,
)


class TestTopicResolution:
    """Test topic lookup."""

    def test_subcategory_wins(self):
        assert resolve_topic("Celebrations", "Birthday") == "birthday"

    def test_direct_topic_id(self):
        assert resolve_topic("", "Work emails") == "work_emails"
        assert resolve_topic("Cities", "new-york") == "new_york"

    def test_pattern_detection(self):
        assert resolve_topic("Sports", "Monday night NFL") == "american_football"
        assert resolve_topic("Animals", "") == "pets"

    def test_unknown_falls_back(self):
        assert resolve_topic("Misc", "Something else") == DEFAULT_TOPIC

    def test_every_entry_has_general_words(self):
        for topic, entry in CONTEXT_LEXICON.items():
            assert entry.general, topic


class TestLexiconWords:
    """Test lexicon detection."""

    def test_word_bounded(self):
        assert has_lexicon_word("I want cake now", "birthday")
        assert not has_lexicon_word("Pancakes for dinner", "birthday")

    def test_multiword_entries(self):
        assert "surprise party" in find_lexicon_words("The surprise party flopped", "birthday")

    def test_injection_word_default(self):
        assert injection_word("birthday") == "cake"

    def test_injection_word_avoids_soft_tags(self):
        assert injection_word("birthday", avoid=["cake"]) == "candles"

    def test_contextual_words_deduplicated(self):
        words = select_contextual_words("birthday", "Savage", count=5)
        assert len(words) == len(set(words))
        assert len(words) <= 5


class TestFallbacks:
    """Test fallback drafts and soft tag hints."""

    def test_fallbacks_use_topic_vocabulary(self):
        drafts = contextual_fallbacks("birthday", "Humorous", count=4)
        assert len(drafts) == 4
        assert all(has_lexicon_word(d, "birthday") for d in drafts)

    def test_soft_tag_hint(self):
        assert soft_tag_hints(["old"]) == ["like a fossil"]

    def test_unknown_soft_tag_has_no_hint(self):
        assert soft_tag_hints(["zebra"]) == []
