"""
End-to-end tests for the batch pipeline.

Covers:
- Output invariants (length, single sentence, punctuation)
- Hard tag coverage and soft tag non-leakage
- Voice and entity rotation across batches in one session
- Rating precedence, fallbacks and configuration errors
- Response serialization
- Coverage lost to the final guard, shared pipelines across threads
- Unsafe tag suggestions and cross-batch line history
"""

import threading
import time

import pytest
from pydantic import ValidationError

from punchline.models.caption import CandidateLine, LengthBucket
from punchline.schemas import BatchRequest
from punchline.services.batch_pipeline import (
    ENTITY_NOT_PLACED,
    Accepted,
    BatchPipeline,
    PipelineState,
    RetryRequested,
    resolve_rating,
    run_batch,
)
from punchline.services import batch_pipeline
from punchline.services.caption_canon import DEFAULT_BUCKETS, get_tier_pattern
from punchline.services.entity_registry import format_for_display
from punchline.services.hard_tag_enforcer import EXHAUSTED_REASON, REMOVED_BY_GUARD_REASON, count_coverage
from punchline.services.quality_scorer import has_fragment
from punchline.services.session_store import CaptionSession, get_session_summary
from punchline.services.structure_normalizer import BANNED_PUNCTUATION
from punchline.services.tag_classifier import find_soft_tag_leaks
from punchline.utils.errors import ConfigurationError


RAW_LINES = [
    "Jesse turned another year older and the cake is a damn fire hazard, so funny",
    "My birthday wish was a nap but the party had other plans which is hilarious",
    "Jesse blew out the candles and set off the smoke alarm, damn what a joke",
    "Presents are cool but have you tried cake for breakfast on your birthday lol",
]


def _request(**overrides) -> BatchRequest:
    values = dict(
        raw_lines=RAW_LINES,
        category="Celebrations",
        subcategory="Birthday",
        tone="Humorous",
        rating="PG-13",
        tag_text='"Jesse", old',
    )
    values.update(overrides)
    return BatchRequest(**values)


class TestBatchInvariants:
    """Every finished batch honors the line contract."""

    def test_lengths_and_shape(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert len(outcome.lines) == len(DEFAULT_BUCKETS)
        for line, (lo, hi) in zip(outcome.lines, DEFAULT_BUCKETS):
            assert lo <= len(line) <= hi, f"{line!r} outside [{lo},{hi}]"
            assert line.endswith(".") and line.count(".") == 1
            assert not any(ch in line for ch in BANNED_PUNCTUATION), line
            assert line[0].isupper()

    def test_hard_tag_coverage(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert count_coverage(outcome.lines, ["Jesse"]) >= 3

    def test_soft_tags_never_leak(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(
            _request(raw_lines=["I feel so old today", "Old age is a scam", "Getting old is wild", "old old old"])
        )
        for line in outcome.lines:
            assert find_soft_tag_leaks(line, ["old"]) == [], line

    def test_rating_respected(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(
            _request(raw_lines=[l + " fuck this shit" for l in RAW_LINES])
        )
        strong = get_tier_pattern("strong")
        for line in outcome.lines:
            assert strong.search(line) is None, line

    def test_voices_distinct(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert len(set(outcome.voices)) == len(outcome.voices) == 4

    def test_state_trail(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert outcome.trail[:7] == (
            PipelineState.RECEIVED,
            PipelineState.CLASSIFIED,
            PipelineState.NORMALIZED,
            PipelineState.CONTENT_ENFORCED,
            PipelineState.VOICED,
            PipelineState.TAG_ENFORCED,
            PipelineState.SCORED,
        )
        assert outcome.trail[-1] == outcome.state
        if outcome.report.retry_recommended:
            assert isinstance(outcome, RetryRequested)
            assert outcome.reasons
        else:
            assert isinstance(outcome, Accepted)


class TestSessionRotation:
    """Registries carry across batches of the same session."""

    def test_voices_rotate_between_batches(self):
        pipeline = BatchPipeline(CaptionSession.seeded(5))
        first = pipeline.run(_request()).voices
        second = pipeline.run(_request()).voices
        assert not set(first) & set(second)

    def test_entities_respect_cooldown(self):
        session = CaptionSession.seeded(8)
        pipeline = BatchPipeline(session)
        picks = []
        for _ in range(4):
            pipeline.run(_request(require_pop_culture_entity=True))
            picks.append(tuple(sorted(session.entities.state.used_in_batch)))
        assert all(len(p) == 1 for p in picks)
        assert len(set(picks)) == 4

    def test_entity_placed_or_reported(self):
        outcome = BatchPipeline(CaptionSession.seeded(13)).run(_request(require_pop_culture_entity=True))
        if outcome.entity is None:
            assert ENTITY_NOT_PLACED in outcome.report.batch_reasons
        else:
            display = format_for_display(outcome.entity).lower()
            assert any(display in line.lower() for line in outcome.lines)

    def test_run_batch_reuses_stored_session(self):
        sid, _ = run_batch(_request())
        same_sid, _ = run_batch(_request(), sid)
        assert same_sid == sid
        assert get_session_summary(sid)["batch_count"] == 2


class TestInputHandling:
    """Test precedence rules, fallbacks and errors."""

    def test_explicit_blocked_for_family_categories(self):
        assert resolve_rating("Explicit", "Humorous", "Pets", "Dog park") == "R"

    def test_sentimental_caps_explicit(self):
        assert resolve_rating("Explicit", "Sentimental") == "PG-13"

    def test_other_ratings_untouched(self):
        assert resolve_rating("R", "Sentimental", "Pets") == "R"

    def test_pipeline_applies_precedence(self):
        outcome = BatchPipeline(CaptionSession.seeded(1)).run(
            _request(rating="Explicit", category="Pets", subcategory="Dogs")
        )
        assert outcome.rating == "R"
        assert outcome.topic == "pets"

    def test_missing_lines_padded(self):
        outcome = BatchPipeline(CaptionSession.seeded(2)).run(_request(raw_lines=["Only one line came back"]))
        assert len(outcome.lines) == 4
        for line, (lo, hi) in zip(outcome.lines, DEFAULT_BUCKETS):
            assert lo <= len(line) <= hi

    def test_dict_request_accepted(self):
        outcome = BatchPipeline(CaptionSession.seeded(3)).run({"raw_lines": RAW_LINES, "rating": "G"})
        assert len(outcome.lines) == 4

    def test_invalid_rating_rejected(self):
        with pytest.raises(ValidationError):
            BatchRequest(raw_lines=RAW_LINES, rating="PG")

    def test_empty_bucket_table_raises(self):
        with pytest.raises(ConfigurationError):
            BatchPipeline(CaptionSession.seeded(4), buckets=[]).run(_request())


class TestResponse:
    """Test the serialized response."""

    def test_response_shape(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        response = outcome.to_response()
        assert response.state == outcome.state.value
        assert response.lines == outcome.lines
        assert set(response.report.sub_scores) == {"format", "context", "voice", "tags", "delivery"}

        payload = response.model_dump(by_alias=True)
        first = payload["report"]["per_line"][0]
        assert "pass" in first
        assert first["index"] == 0


class TestReadableOutput:
    """Repairs never leave stub words in the middle of a line."""

    @pytest.mark.parametrize("seed", [1, 7, 42, 99])
    def test_jesse_batch_has_no_stubs(self, seed):
        outcome = BatchPipeline(CaptionSession.seeded(seed)).run(_request())
        for line in outcome.lines:
            padded = f" {line.lower()} "
            assert " my which " not in padded, line
            assert " the which " not in padded, line

    def test_fragments_are_reported(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        for line, verdict in zip(outcome.lines, outcome.report.per_line):
            if has_fragment(line):
                assert "delivery.fragment" in verdict.reasons


class TestFinalGuardCoverage:
    """Hard tags scrubbed after enforcement send the batch back."""

    def test_banned_hard_tag_requests_retry(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request(rating="G", tag_text='"damn"'))
        assert isinstance(outcome, RetryRequested)
        assert outcome.report.retry_recommended
        assert count_coverage(outcome.lines, ["damn"]) < 3
        assert {REMOVED_BY_GUARD_REASON, EXHAUSTED_REASON} & set(outcome.report.batch_reasons)
        assert "tags" in outcome.report.issue_categories

    def test_allowed_hard_tag_keeps_coverage(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert REMOVED_BY_GUARD_REASON not in outcome.report.batch_reasons


class TestConcurrency:
    """One pipeline may be shared between threads."""

    def test_shared_pipeline_two_threads(self, monkeypatch):
        real_enforce = batch_pipeline.enforce_content

        def slow_enforce(*args, **kwargs):
            time.sleep(0.005)
            return real_enforce(*args, **kwargs)

        monkeypatch.setattr(batch_pipeline, "enforce_content", slow_enforce)
        pipeline = BatchPipeline(CaptionSession.seeded(21))
        outcomes, errors = [], []

        def worker():
            try:
                outcomes.append(pipeline.run(_request()))
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(outcomes) == 2
        for outcome in outcomes:
            assert len(outcome.trail) == 8
            assert outcome.trail[0] == PipelineState.RECEIVED
            assert outcome.trail[-1] == outcome.state
        assert pipeline.session.batch_count == 2

    def test_pipeline_holds_no_run_state(self):
        pipeline = BatchPipeline(CaptionSession.seeded(3))
        pipeline.run(_request())
        assert not hasattr(pipeline, "trail")
        assert not hasattr(pipeline, "state")


class TestOutcomeStates:
    """Each outcome type names its terminal state."""

    def test_class_level_states(self):
        assert Accepted.STATE == PipelineState.ACCEPTED
        assert RetryRequested.STATE == PipelineState.RETRY_REQUESTED

    def test_instance_state_matches_class(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert outcome.state == type(outcome).STATE
        assert outcome.to_response().state == outcome.state.value


class TestTagSuggestions:
    """Unsafe tags are dropped and reported with alternatives."""

    def test_unsafe_soft_tag_dropped(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request(tag_text='"Jesse", redneck, old'))
        assert [s.original_tag for s in outcome.tag_suggestions] == ["redneck"]
        assert "rural" in outcome.tag_suggestions[0].alternatives
        assert count_coverage(outcome.lines, ["Jesse"]) >= 3

    def test_unsafe_hard_tag_never_forced_in(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request(tag_text='"trailer trash"'))
        assert outcome.tag_suggestions[0].original_tag == "trailer trash"
        assert not any("trailer trash" in line.lower() for line in outcome.lines)
        assert REMOVED_BY_GUARD_REASON not in outcome.report.batch_reasons

    def test_suggestions_serialized(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request(tag_text='"Jesse", ghetto'))
        payload = outcome.to_response().model_dump()
        assert payload["tag_suggestions"][0]["original_tag"] == "ghetto"
        assert "low-budget" in payload["tag_suggestions"][0]["alternatives"]

    def test_safe_tags_have_no_suggestions(self):
        outcome = BatchPipeline(CaptionSession.seeded(42)).run(_request())
        assert outcome.to_response().tag_suggestions == []


class TestLineHistory:
    """Accepted lines are remembered by the session."""

    def test_history_recorded_for_accepted_batches_only(self):
        session = CaptionSession.seeded(42)
        outcome = BatchPipeline(session).run(_request())
        expected = len(outcome.lines) if isinstance(outcome, Accepted) else 0
        assert len(session.history) == expected

    def test_repeat_of_history_gets_varied(self):
        session = CaptionSession.seeded(5)
        text = "My cake collapsed but the candles survived the party"
        session.history.add([text], "Celebrations", "Birthday")
        line = CandidateLine(text=text, bucket_index=0, bucket=LengthBucket(40, 100))

        BatchPipeline(session)._vary_history_repeats([line], "Celebrations", "Birthday", [])

        assert "history_varied" in line.actions
        assert line.text != text
        assert not session.history.is_duplicate(line.text, "Celebrations", "Birthday")

    def test_other_subcategory_not_a_repeat(self):
        session = CaptionSession.seeded(5)
        text = "My cake collapsed but the candles survived the party"
        session.history.add([text], "Celebrations", "Wedding")
        line = CandidateLine(text=text, bucket_index=0, bucket=LengthBucket(40, 100))

        BatchPipeline(session)._vary_history_repeats([line], "Celebrations", "Birthday", [])

        assert line.text == text
