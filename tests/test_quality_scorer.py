"""
Tests for the Batch Quality Scorer.

Covers:
- Clean batch scoring
- Sub-score computation (format, context, voice, tags, delivery)
- Retry thresholds and issue categories
- Exhaustion marking
- Mid-line fragments and history repeats
"""

from punchline.services.caption_canon import build_bucket_table
from punchline.services.hard_tag_enforcer import EXHAUSTED_REASON, REMOVED_BY_GUARD_REASON
from punchline.services.quality_scorer import (
    HISTORY_MATCH_REASON,
    ScoringContext,
    delivery_score,
    has_fragment,
    score_batch,
    with_exhaustion,
)
from punchline.services.voice_catalog import get_voice


CLEAN_LINES = [
    "My life is a sitcom and I am the laugh track.",
    "I planned my whole life around naps and honestly that plan works great.",
    "My daily life is mostly coffee and emails and I somehow still call that a career move every week.",
    "My life runs on snacks and vibes and I refuse to apologize for it.",
]


def _context(**overrides):
    values = dict(buckets=build_bucket_table(), rating="G", tone="", topic="everyday")
    values.update(overrides)
    return ScoringContext(**values)


class TestCleanBatch:
    """A batch that meets every rule."""

    def test_perfect_score(self):
        report = score_batch(CLEAN_LINES, _context())
        assert report.overall_score == 100
        assert not report.retry_recommended
        assert report.issue_categories == []
        assert all(line.passed for line in report.per_line)

    def test_lanes_are_bucket_labels(self):
        report = score_batch(CLEAN_LINES, _context())
        assert [line.lane for line in report.per_line] == ["[40,60]", "[61,80]", "[81,100]", "[61,80]"]

    def test_scoring_is_read_only(self):
        lines = list(CLEAN_LINES)
        score_batch(lines, _context())
        assert lines == CLEAN_LINES


class TestSubScores:
    """Test individual sub-scores."""

    def test_missing_hard_tag_coverage(self):
        report = score_batch(CLEAN_LINES, _context(hard_tags=["Jesse"]))
        assert report.sub_scores["tags"] == 0
        assert "tags.coverage_below_minimum" in report.batch_reasons
        assert "tags.missing" in report.per_line[0].reasons

    def test_voice_opener_checked(self):
        voices = [get_voice("deadpan")] * 4
        report = score_batch(CLEAN_LINES, _context(voices=voices))
        assert report.sub_scores["voice"] == 0
        assert "voice.pattern_missing" in report.per_line[0].reasons
        assert "voice.repeated" in report.batch_reasons

    def test_soft_tag_leak_fails_line(self):
        report = score_batch(CLEAN_LINES, _context(soft_tags=["coffee"]))
        assert "soft_tags.leak" in report.per_line[2].reasons
        assert not report.per_line[2].passed

    def test_delivery_penalties(self):
        score, issues = delivery_score("When you go to a party and the.")
        assert "delivery.robotic_opener" in issues
        assert "delivery.dangling_ending" in issues
        assert score < 70

    def test_choppy_run(self):
        _, issues = delivery_score("I am so in it to go up now.")
        assert "delivery.choppy" in issues

    def test_fragment_fails_delivery(self):
        score, issues = delivery_score("Fun fact Jesse says my which is hilarious damn right.")
        assert "delivery.fragment" in issues
        assert score < 70

    def test_history_match_reported(self):
        report = score_batch(CLEAN_LINES, _context(history_matches=[1]))
        assert HISTORY_MATCH_REASON in report.per_line[1].reasons
        assert HISTORY_MATCH_REASON not in report.per_line[0].reasons
        assert "duplicate" in report.issue_categories


class TestRetry:
    """Test retry recommendation."""

    def test_many_categories_trigger_retry(self):
        lines = ["bad, line!", "when you see it, wow", "nah", "ok so"]
        report = score_batch(lines, _context(rating="PG-13", tone="Humorous"))
        assert report.retry_recommended
        assert "format" in report.issue_categories
        assert len(report.issue_categories) > 2

    def test_exhaustion_forces_retry(self):
        report = with_exhaustion(score_batch(CLEAN_LINES, _context()))
        assert report.retry_recommended
        assert EXHAUSTED_REASON in report.batch_reasons
        assert "tags" in report.issue_categories

    def test_coverage_below_k_forces_retry(self):
        lines = [
            "My life is a sitcom and Jesse is the laugh track.",
            CLEAN_LINES[1],
            CLEAN_LINES[2],
            CLEAN_LINES[3],
        ]
        report = score_batch(lines, _context(hard_tags=["Jesse"]))
        assert report.overall_score >= 75
        assert len(report.issue_categories) <= 2
        assert report.retry_recommended

    def test_guard_removal_reason(self):
        report = with_exhaustion(score_batch(CLEAN_LINES, _context()), REMOVED_BY_GUARD_REASON)
        assert report.retry_recommended
        assert REMOVED_BY_GUARD_REASON in report.batch_reasons
        assert EXHAUSTED_REASON not in report.batch_reasons


class TestFragments:
    """Stub words stranded inside a line."""

    def test_possessive_before_relative(self):
        assert has_fragment("Fun fact Jesse says my which is hilarious.")

    def test_article_before_verb(self):
        assert has_fragment("Honestly the is wild.")

    def test_conjunction_before_relative(self):
        assert has_fragment("Another year older but which is hilarious.")

    def test_clean_lines_have_none(self):
        assert not any(has_fragment(line) for line in CLEAN_LINES)
