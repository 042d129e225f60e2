"""
Batch Pipeline — one caption batch from raw generator output to verdict.

State machine (strictly sequential, one pass per run):

    RECEIVED -> CLASSIFIED -> NORMALIZED -> CONTENT_ENFORCED -> VOICED
             -> TAG_ENFORCED -> SCORED -> ACCEPTED | RETRY_REQUESTED

Stages:
1. CLASSIFIED        rating/tone precedence, tag split, unsafe tags dropped
                     with suggestions, topic, bucket table
2. NORMALIZED        breadcrumb and stale phrase cleanup, soft tag removal,
                     structural normalization per bucket
3. CONTENT_ENFORCED  bans, lexicon, tone and rating edge; soft tag hints;
                     near-duplicate diversification inside the batch and
                     against the session's line history
4. VOICED            one batch opened on both registries, voices assigned,
                     optional pop culture entity placed, stencils rendered
5. TAG_ENFORCED      hard tags spread over K lines, then a final guard
                     (ban scrub, soft tag strip, re-fit, re-normalize) and a
                     coverage recount
6. SCORED            read-only quality report

The pipeline object keeps no state between runs. Each run tracks its own
state trail, and rotation memory and line history live in the CaptionSession,
whose lock is held for the whole run. One pipeline may serve several threads.
Malformed text never raises. Only a broken deployment (empty bucket table,
a rating without voices) raises ConfigurationError.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from punchline.config.logger import app_logger, log_performance
from punchline.config.settings import settings
from punchline.models.caption import CandidateLine, LengthBucket, TagSet
from punchline.models.rotation import VoiceProfile
from punchline.schemas import BatchReport, BatchRequest, BatchResponse, LineReport, TagSuggestionReport
from punchline.services.caption_canon import (
    build_bucket_table,
    is_explicit_blocked,
    normalize_rating,
    tone_key,
)
from punchline.services.content_enforcer import (
    diversify_duplicates,
    enforce_content,
    rating_policy,
    scrub_banned,
    vary_line,
)
from punchline.services.context_lexicon import contextual_fallbacks, resolve_topic, soft_tag_hints
from punchline.services.entity_registry import format_for_display
from punchline.services.hard_tag_enforcer import REMOVED_BY_GUARD_REASON, count_coverage, enforce_hard_tags
from punchline.services.quality_scorer import QualityReport, ScoringContext, score_batch, with_exhaustion
from punchline.services.session_store import CaptionSession, get_session
from punchline.services.stencil_renderer import render_line
from punchline.services.structure_normalizer import (
    append_clause,
    contains_phrase,
    fit_protected,
    normalize_line,
    normalize_to_bucket,
    strip_category_leakage,
    strip_stale_phrases,
)
from punchline.services.tag_classifier import classify_tags, find_soft_tag_leaks, strip_soft_tags
from punchline.services.tag_sanitizer import TagSuggestion, sanitize_tag_set
from punchline.services.voice_catalog import known_openers


ENTITY_NOT_PLACED = "entity.not_placed"


class PipelineState(str, Enum):
    RECEIVED = "RECEIVED"
    CLASSIFIED = "CLASSIFIED"
    NORMALIZED = "NORMALIZED"
    CONTENT_ENFORCED = "CONTENT_ENFORCED"
    VOICED = "VOICED"
    TAG_ENFORCED = "TAG_ENFORCED"
    SCORED = "SCORED"
    ACCEPTED = "ACCEPTED"
    RETRY_REQUESTED = "RETRY_REQUESTED"


_TRANSITIONS: Dict[PipelineState, Tuple[PipelineState, ...]] = {
    PipelineState.RECEIVED: (PipelineState.CLASSIFIED,),
    PipelineState.CLASSIFIED: (PipelineState.NORMALIZED,),
    PipelineState.NORMALIZED: (PipelineState.CONTENT_ENFORCED,),
    PipelineState.CONTENT_ENFORCED: (PipelineState.VOICED,),
    PipelineState.VOICED: (PipelineState.TAG_ENFORCED,),
    PipelineState.TAG_ENFORCED: (PipelineState.SCORED,),
    PipelineState.SCORED: (PipelineState.ACCEPTED, PipelineState.RETRY_REQUESTED),
    PipelineState.ACCEPTED: (),
    PipelineState.RETRY_REQUESTED: (),
}


# ════════════════════════════════════════════════════════════════════════════
# OUTCOMES
# ════════════════════════════════════════════════════════════════════════════

@dataclass
class RunTrail:
    """State of one run. Created per call so concurrent runs never share it."""
    state: PipelineState = PipelineState.RECEIVED
    steps: List[PipelineState] = field(default_factory=lambda: [PipelineState.RECEIVED])

    def advance(self, state: PipelineState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {state.value}")
        self.state = state
        self.steps.append(state)
        app_logger.debug(f"Pipeline state: {state.value}")


@dataclass(frozen=True)
class _Outcome:
    STATE: ClassVar[PipelineState]

    lines: List[str]
    report: QualityReport
    voices: List[Optional[str]] = field(default_factory=list)
    entity: Optional[str] = None
    rating: str = ""
    topic: str = ""
    trail: Tuple[PipelineState, ...] = ()
    tag_suggestions: Tuple[TagSuggestion, ...] = ()

    @property
    def state(self) -> PipelineState:
        return self.STATE

    def to_response(self) -> BatchResponse:
        report = BatchReport(
            per_line=[
                LineReport(index=l.index, lane=l.lane, passed=l.passed, score=l.score, reasons=list(l.reasons))
                for l in self.report.per_line
            ],
            batch_reasons=list(self.report.batch_reasons),
            sub_scores=dict(self.report.sub_scores),
            issue_categories=list(self.report.issue_categories),
            overall_score=self.report.overall_score,
            retry_recommended=self.report.retry_recommended,
        )
        return BatchResponse(
            lines=list(self.lines),
            report=report,
            voices=list(self.voices),
            entity=self.entity,
            state=self.state.value,
            tag_suggestions=[TagSuggestionReport(**s.to_dict()) for s in self.tag_suggestions],
        )


@dataclass(frozen=True)
class Accepted(_Outcome):
    """Batch meets the quality bar."""
    STATE: ClassVar[PipelineState] = PipelineState.ACCEPTED


@dataclass(frozen=True)
class RetryRequested(_Outcome):
    """Best-effort batch; the caller should ask the generator again."""
    STATE: ClassVar[PipelineState] = PipelineState.RETRY_REQUESTED

    reasons: List[str] = field(default_factory=list)


BatchOutcome = Union[Accepted, RetryRequested]


# ════════════════════════════════════════════════════════════════════════════
# PIPELINE
# ════════════════════════════════════════════════════════════════════════════

def resolve_rating(rating: str, tone: str, category: str = "", subcategory: str = "") -> str:
    """
    Apply input precedence to the requested rating.

    Explicit is downgraded to R for family categories (pets, kids, school)
    and to PG-13 when paired with a Sentimental tone.
    """
    tier = normalize_rating(rating)
    if tier == "Explicit" and is_explicit_blocked(category, subcategory):
        app_logger.info(f"Explicit rating blocked for '{category} > {subcategory}', using R")
        tier = "R"
    if tier == "Explicit" and tone_key(tone) == "sentimental":
        app_logger.info("Sentimental tone with Explicit rating, using PG-13")
        tier = "PG-13"
    return tier


class BatchPipeline:
    """
    Validation and repair pipeline for one session.

    Usage:
        pipeline = BatchPipeline(session)
        outcome = pipeline.run(BatchRequest(raw_lines=[...], rating="PG-13"))
        if isinstance(outcome, RetryRequested):
            ...  # regenerate
    """

    def __init__(
        self,
        session: Optional[CaptionSession] = None,
        buckets: Optional[Sequence[Tuple[int, int]]] = None,
        min_tag_lines: Optional[int] = None,
    ):
        self.session = session or CaptionSession()
        self._ranges = buckets
        self.min_tag_lines = settings.HARD_TAG_MIN_LINES if min_tag_lines is None else min_tag_lines

    def run(self, request: Union[BatchRequest, dict]) -> BatchOutcome:
        """Run one batch. A dict is validated into a BatchRequest first."""
        if not isinstance(request, BatchRequest):
            request = BatchRequest.model_validate(request)

        start = time.perf_counter()
        with self.session.lock:
            outcome = self._run(request, RunTrail())
            self.session.last_state = outcome.state.value

        log_performance(
            "batch_pipeline",
            time.perf_counter() - start,
            state=outcome.state.value,
            score=outcome.report.overall_score,
        )
        return outcome

    # ════════════════════════════════════════════════════════════════════════
    # STAGES
    # ════════════════════════════════════════════════════════════════════════

    def _run(self, request: BatchRequest, trail: RunTrail) -> BatchOutcome:
        # 1. Classify
        rating = resolve_rating(request.rating, request.tone, request.category, request.subcategory)
        tone = request.tone
        tags = TagSet.from_lists(request.tags.hard, request.tags.soft)
        if request.tag_text:
            tags = tags.merge(classify_tags(request.tag_text))
        tags, suggestions = sanitize_tag_set(tags)
        hard, soft = list(tags.hard), list(tags.soft)
        topic = resolve_topic(request.category, request.subcategory)

        buckets = build_bucket_table(self._ranges)
        if settings.SHUFFLE_BUCKETS:
            self.session.rng.shuffle(buckets)

        candidates = self._build_candidates(request.raw_lines, buckets, topic, tone)
        app_logger.info(
            f"Batch received: {len(request.raw_lines)} raw lines, rating={rating}, tone={tone}, "
            f"topic={topic}, hard={hard}, soft={soft}"
        )
        trail.advance(PipelineState.CLASSIFIED)

        # 2. Normalize
        for line in candidates:
            text = strip_category_leakage(line.text, request.category, request.subcategory)
            text = strip_stale_phrases(text)
            text = strip_soft_tags(text, soft, protected=hard)
            line.text = normalize_to_bucket(text, line.bucket, avoid=soft, keep=hard)
        trail.advance(PipelineState.NORMALIZED)

        # 3. Content and tone
        for line in candidates:
            result = enforce_content(
                line.text, rating, tone, topic, line.bucket.lo, line.bucket.hi,
                soft_tags=soft, anchors=line.anchors, keep=hard,
            )
            line.text = result.text
            line.actions.extend(result.actions)
            line.issues.extend(result.unresolved)
            for anchor in result.anchors:
                line.add_anchor(anchor)

        self._apply_soft_hints(candidates, soft, hard)

        texts, changed = diversify_duplicates(
            [c.text for c in candidates],
            [(c.bucket.lo, c.bucket.hi) for c in candidates],
            anchors=[c.anchors for c in candidates],
            soft_tags=soft,
        )
        for index in changed:
            candidates[index].text = texts[index]
            candidates[index].actions.append("diversified")
        self._vary_history_repeats(candidates, request.category, request.subcategory, soft)
        trail.advance(PipelineState.CONTENT_ENFORCED)

        # 4. Voices and entity, one batch on each registry
        self.session.start_new_batch()
        voice_ids = self.session.voices.assign(len(candidates), rating)
        profiles: List[Optional[VoiceProfile]] = [self.session.voices.get_profile(v) for v in voice_ids]

        entity: Optional[str] = None
        entity_placed = True
        if request.require_pop_culture_entity:
            entity = self.session.entities.select_entity()
            entity_placed = entity is not None and self._place_entity(candidates, entity, soft, hard)

        for line, profile in zip(candidates, profiles):
            line.voice = profile.id
            protected = line.anchors + [t for t in hard if contains_phrase(line.text, t)]
            text, mode = render_line(
                line.text, profile, line.bucket.lo, line.bucket.hi,
                anchors=protected, avoid=soft, keep=hard,
            )
            line.text = text
            line.render_mode = mode
            if mode != "plain":
                line.add_anchor(profile.opener)
        trail.advance(PipelineState.VOICED)

        # 5. Hard tags, then the final guard
        tag_result = enforce_hard_tags(
            [c.text for c in candidates],
            hard,
            buckets,
            min_lines=self.min_tag_lines,
            anchors=[c.anchors for c in candidates],
            openers=known_openers(),
            avoid=soft,
        )
        for index, text in enumerate(tag_result.lines):
            candidates[index].text = text
            if index in tag_result.injected:
                candidates[index].actions.append(f"hard_tag_{tag_result.strategies[index]}")
                for tag in hard:
                    candidates[index].add_anchor(tag)

        policy = rating_policy(rating, tone)
        for line in candidates:
            line.text = self._final_guard(line, policy, soft, hard)
            line.anchors = [a for a in line.anchors if contains_phrase(line.text, a)]

        lines = [c.text for c in candidates]
        k = min(self.min_tag_lines, len(lines)) if hard else 0
        coverage = count_coverage(lines, hard)
        lost_to_guard = bool(hard) and not tag_result.exhausted and coverage < k
        if lost_to_guard:
            app_logger.warning(f"Final guard removed hard tags: {coverage}/{k} lines still carry {hard}")
        trail.advance(PipelineState.TAG_ENFORCED)

        # 6. Score
        history_matches = self.session.history.find_duplicates(lines, request.category, request.subcategory)
        context = ScoringContext(
            buckets=buckets,
            rating=rating,
            tone=tone,
            topic=topic,
            hard_tags=hard,
            soft_tags=soft,
            voices=profiles,
            keep=[a for c in candidates for a in c.anchors],
            min_tag_lines=self.min_tag_lines,
            history_matches=history_matches,
        )
        report = score_batch(lines, context)
        if tag_result.exhausted:
            report = with_exhaustion(report)
        if lost_to_guard:
            report = with_exhaustion(report, REMOVED_BY_GUARD_REASON)
        if request.require_pop_culture_entity and not entity_placed:
            report.batch_reasons.append(ENTITY_NOT_PLACED)
            if "entity" not in report.issue_categories:
                report.issue_categories = sorted(report.issue_categories + ["entity"])
        trail.advance(PipelineState.SCORED)

        common = dict(
            lines=lines,
            report=report,
            voices=[c.voice for c in candidates],
            entity=entity if entity_placed else None,
            rating=rating,
            topic=topic,
            tag_suggestions=tuple(suggestions),
        )
        if report.retry_recommended:
            trail.advance(PipelineState.RETRY_REQUESTED)
            app_logger.warning(
                f"Batch flagged for retry: score={report.overall_score}, categories={report.issue_categories}"
            )
            return RetryRequested(trail=tuple(trail.steps), reasons=report.reasons, **common)

        self.session.history.add(lines, request.category, request.subcategory)
        trail.advance(PipelineState.ACCEPTED)
        app_logger.info(f"Batch accepted: score={report.overall_score}")
        return Accepted(trail=tuple(trail.steps), **common)

    # ════════════════════════════════════════════════════════════════════════
    # HELPERS
    # ════════════════════════════════════════════════════════════════════════

    def _build_candidates(
        self,
        raw_lines: Sequence[str],
        buckets: List[LengthBucket],
        topic: str,
        tone: str,
    ) -> List[CandidateLine]:
        raw = [r for r in raw_lines if r and r.strip()][:len(buckets)]
        if len(raw) < len(buckets):
            fallbacks = contextual_fallbacks(topic, tone, count=len(buckets))
            app_logger.info(f"Padding batch with {len(buckets) - len(raw)} contextual fallback lines")
            for i in range(len(raw), len(buckets)):
                raw.append(fallbacks[i % len(fallbacks)])
        return [CandidateLine(text=text, bucket_index=i, bucket=buckets[i]) for i, text in enumerate(raw)]

    def _apply_soft_hints(self, candidates: List[CandidateLine], soft: List[str], hard: List[str]) -> None:
        """Render soft tags as related phrasing, only where it fits without trimming."""
        for hint in soft_tag_hints(soft):
            for line in candidates:
                if contains_phrase(line.text, hint):
                    break
                if len(line.text) + 1 + len(hint) > line.bucket.hi:
                    continue
                text, ok = append_clause(
                    line.text, hint, line.bucket.lo, line.bucket.hi,
                    protected=line.anchors, avoid=soft, keep=hard + line.anchors,
                )
                if ok:
                    line.text = text
                    line.add_anchor(hint)
                    line.actions.append("soft_hint")
                    break

    def _vary_history_repeats(
        self,
        candidates: List[CandidateLine],
        category: str,
        subcategory: str,
        soft: List[str],
    ) -> None:
        """Give lines that repeat an earlier accepted batch a variation clause."""
        repeats = self.session.history.find_duplicates([c.text for c in candidates], category, subcategory)
        for index in repeats:
            line = candidates[index]
            text, ok = vary_line(line.text, line.bucket.lo, line.bucket.hi, protected=line.anchors, soft_tags=soft)
            if ok:
                line.text = text
                line.actions.append("history_varied")

    def _place_entity(self,candidates: List[CandidateLine], entity: str, soft: List[str], hard: List[str]) -> bool:
        """Append "like <Entity>" to the roomiest line that keeps it."""
        clause = f"like {format_for_display(entity)}"
        if find_soft_tag_leaks(clause, soft):
            return False
        for line in sorted(candidates, key=lambda c: c.bucket.hi, reverse=True):
            text, ok = append_clause(
                line.text, clause, line.bucket.lo, line.bucket.hi,
                protected=line.anchors, avoid=soft, keep=hard + line.anchors,
            )
            if ok:
                line.text = text
                line.add_anchor(clause)
                line.actions.append("entity")
                return True
        app_logger.warning(f"Entity '{entity}' did not fit any line")
        return False

    def _final_guard(self, line: CandidateLine, policy, soft: List[str], hard: List[str]) -> str:
        keep = hard + line.anchors
        text = scrub_banned(line.text, policy)
        text = strip_soft_tags(text, soft, protected=keep)
        text = fit_protected(text, line.bucket.hi, keep)
        return normalize_line(text, line.bucket.lo, line.bucket.hi, avoid=soft, keep=keep)


def run_batch(request: Union[BatchRequest, dict], session_id: Optional[str] = None) -> Tuple[str, BatchOutcome]:
    """Run a batch against a stored session. Returns (session_id, outcome)."""
    sid, session = get_session(session_id)
    return sid, BatchPipeline(session).run(request)
