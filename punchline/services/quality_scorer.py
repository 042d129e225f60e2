"""
Batch Quality Scorer — read-only diagnostics for a finished batch.

Five sub-scores, each 0-100:
    format    share of lines that pass every shape rule
    context   share of lines carrying a topic lexicon word
    voice     share of voiced lines that open with their voice
    tags      hard tag coverage against the required K lines
    delivery  mean per-line delivery score (robotic openers, dangling
              endings, mid-line fragments, runs of tiny words, no
              conversational marker)

overall_score is the rounded mean of the five. A batch is flagged for
regeneration when overall_score falls below the threshold, when fewer than
K lines carry the hard tags, or when issues span more than the allowed
number of categories. Issue codes are "category.detail"; the category is
everything before the dot.

Scoring never changes a line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from punchline.config.settings import settings
from punchline.models.caption import LengthBucket
from punchline.models.rotation import VoiceProfile
from punchline.services.caption_canon import ROBOTIC_OPENERS, STALE_PHRASES
from punchline.services.content_enforcer import content_violations
from punchline.services.hard_tag_enforcer import EXHAUSTED_REASON, count_coverage
from punchline.services.structure_normalizer import ends_dangling, format_violations
from punchline.services.tag_classifier import find_soft_tag_leaks


DELIVERY_PASS_SCORE = 70

# A line too close to one from an earlier batch of the same subcategory
HISTORY_MATCH_REASON = "duplicate.history_match"

ROBOTIC_PENALTY = 30
DANGLING_PENALTY = 25
SHORT_RUN_PENALTY = 15
STALE_PENALTY = 20
FRAGMENT_PENALTY = 35
FLAT_PENALTY = 10

CONVERSATIONAL_MARKERS = frozenset({
    "i", "i'm", "i've", "me", "my", "we", "us", "our", "you", "your", "you're",
    "honestly", "literally", "basically", "actually", "seriously", "look",
    "listen", "real", "lol", "nah", "yeah", "ok", "okay",
})

_WORD_RE = re.compile(r"[A-Za-z0-9']+")

FRAGMENT_DETERMINERS = frozenset({"the", "a", "an", "my", "your", "our", "their", "its"})
FRAGMENT_FOLLOWERS = frozenset({
    "which", "is", "was", "are", "were", "and", "but", "or", "with", "to", "of", "for",
    "says", "the", "a", "an", "my", "your", "our", "their", "its",
})
FRAGMENT_CONJUNCTIONS = frozenset({"and", "but", "or", "so", "because"})


@dataclass
class ScoringContext:
    """Everything the scorer needs to judge a batch besides the lines."""
    buckets: Sequence[LengthBucket]
    rating: str
    tone: str
    topic: str
    hard_tags: Sequence[str] = ()
    soft_tags: Sequence[str] = ()
    voices: Sequence[Optional[VoiceProfile]] = ()
    keep: Sequence[str] = ()
    min_tag_lines: int = settings.HARD_TAG_MIN_LINES
    threshold: int = settings.RETRY_SCORE_THRESHOLD
    max_issue_categories: int = settings.MAX_ISSUE_CATEGORIES
    history_matches: Sequence[int] = ()


@dataclass
class LineScore:
    index: int
    lane: str
    passed: bool
    score: int
    reasons: List[str] = field(default_factory=list)


@dataclass
class QualityReport:
    per_line: List[LineScore]
    batch_reasons: List[str]
    sub_scores: Dict[str, int]
    issue_categories: List[str]
    overall_score: int
    retry_recommended: bool

    @property
    def reasons(self) -> List[str]:
        """Every distinct reason in the batch, batch-level first."""
        seen: List[str] = list(self.batch_reasons)
        for line in self.per_line:
            for reason in line.reasons:
                if reason not in seen:
                    seen.append(reason)
        return seen


def issue_category(code: str) -> str:
    return code.split(".", 1)[0]


# ════════════════════════════════════════════════════════════════════════════
# DELIVERY
# ════════════════════════════════════════════════════════════════════════════

def _has_short_word_run(text: str, run: int = 3, max_len: int = 2) -> bool:
    streak = 0
    for word in _WORD_RE.findall(text):
        streak = streak + 1 if len(word) <= max_len else 0
        if streak >= run:
            return True
    return False


def has_fragment(text: str) -> bool:
    """True when a determiner or conjunction is cut off mid-line ("says my which")."""
    words = [w.lower() for w in _WORD_RE.findall(text)]
    for current, following in zip(words, words[1:]):
        if current in FRAGMENT_DETERMINERS and following in FRAGMENT_FOLLOWERS:
            return True
        if current in FRAGMENT_CONJUNCTIONS and following == "which":
            return True
    return False


def delivery_score(text: str, keep: Sequence[str] = ()) -> Tuple[int, List[str]]:
    """Return (score, issue_codes) for how natural a line reads aloud."""
    lowered = text.lower()
    score = 100
    issues: List[str] = []

    if any(lowered.startswith(opener) for opener in ROBOTIC_OPENERS):
        score -= ROBOTIC_PENALTY
        issues.append("delivery.robotic_opener")
    if any(phrase in lowered for phrase in STALE_PHRASES):
        score -= STALE_PENALTY
        issues.append("delivery.stale_phrase")
    if ends_dangling(text, keep):
        score -= DANGLING_PENALTY
        issues.append("delivery.dangling_ending")
    if has_fragment(text):
        score -= FRAGMENT_PENALTY
        issues.append("delivery.fragment")
    if _has_short_word_run(text):
        score -= SHORT_RUN_PENALTY
        issues.append("delivery.choppy")
    if not any(w.lower() in CONVERSATIONAL_MARKERS for w in _WORD_RE.findall(text)):
        score -= FLAT_PENALTY

    return max(0, score), issues


# ════════════════════════════════════════════════════════════════════════════
# SCORING
# ════════════════════════════════════════════════════════════════════════════

def _percent(hits: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(100 * hits / total)


def score_batch(lines: Sequence[str], context: ScoringContext) -> QualityReport:
    """
    Score a finished batch.

    Args:
        lines: final caption text, one per bucket
        context: request context and thresholds

    Returns:
        QualityReport with per-line verdicts, sub-scores and the retry flag.
    """
    hard_tags = [t for t in context.hard_tags if t]
    keep = list(hard_tags) + list(context.keep)
    k = max(0, min(context.min_tag_lines, len(lines))) if hard_tags else 0
    coverage = count_coverage(lines, hard_tags)

    per_line: List[LineScore] = []
    format_ok = context_ok = 0
    voiced = voice_ok = 0
    delivery_total = 0

    for index, text in enumerate(lines):
        bucket = context.buckets[index] if index < len(context.buckets) else None
        reasons: List[str] = []

        fmt = format_violations(text, bucket.lo, bucket.hi) if bucket else []
        reasons.extend(fmt)
        format_ok += 0 if fmt else 1

        content = content_violations(text, context.rating, context.tone, context.topic)
        reasons.extend(content)
        has_context = "context.lexicon_missing" not in content
        context_ok += 1 if has_context else 0

        voice = context.voices[index] if index < len(context.voices) else None
        voice_hit = True
        if voice is not None:
            voiced += 1
            voice_hit = text.lower().startswith(voice.opener.lower())
            voice_ok += 1 if voice_hit else 0
            if not voice_hit:
                reasons.append("voice.pattern_missing")

        if index in context.history_matches:
            reasons.append(HISTORY_MATCH_REASON)

        if find_soft_tag_leaks(text, context.soft_tags):
            reasons.append("soft_tags.leak")

        if hard_tags and coverage < k and not all(t.lower() in text.lower() for t in hard_tags):
            reasons.append("tags.missing")

        delivery, delivery_issues = delivery_score(text, keep)
        reasons.extend(delivery_issues)
        delivery_total += delivery

        line_score = round((100 * (not fmt) + 100 * has_context + 100 * voice_hit + delivery) / 4)
        passed = not fmt and delivery >= DELIVERY_PASS_SCORE and not any(
            issue_category(r) in ("rating", "soft_tags") for r in reasons
        )
        per_line.append(LineScore(
            index=index,
            lane=bucket.label if bucket else "",
            passed=passed,
            score=line_score,
            reasons=reasons,
        ))

    batch_reasons: List[str] = []
    if hard_tags and coverage < k:
        batch_reasons.append("tags.coverage_below_minimum")
    voice_ids = [v.id for v in context.voices if v is not None]
    if len(set(voice_ids)) < len(voice_ids):
        batch_reasons.append("voice.repeated")

    total = len(lines)
    sub_scores = {
        "format": _percent(format_ok, total),
        "context": _percent(context_ok, total),
        "voice": _percent(voice_ok, voiced),
        "tags": _percent(min(coverage, k), k) if hard_tags else 100,
        "delivery": round(delivery_total / total) if total else 100,
    }
    overall = round(sum(sub_scores.values()) / len(sub_scores))

    categories: List[str] = []
    for reason in batch_reasons + [r for line in per_line for r in line.reasons]:
        category = issue_category(reason)
        if category not in categories:
            categories.append(category)

    retry = (
        overall < context.threshold
        or len(categories) > context.max_issue_categories
        or (bool(hard_tags) and coverage < k)
    )
    return QualityReport(
        per_line=per_line,
        batch_reasons=batch_reasons,
        sub_scores=sub_scores,
        issue_categories=sorted(categories),
        overall_score=overall,
        retry_recommended=retry,
    )


def with_exhaustion(report: QualityReport, reason: str = EXHAUSTED_REASON) -> QualityReport:
    """Mark a report whose hard tag coverage could not be kept at K."""
    if reason not in report.batch_reasons:
        report.batch_reasons.append(reason)
    if "tags" not in report.issue_categories:
        report.issue_categories = sorted(report.issue_categories + ["tags"])
    report.retry_recommended = True
    return report
