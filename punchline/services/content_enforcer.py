"""
Content & Tone Enforcer — rating vocabulary, tone words and topical grounding.

For one line this module guarantees, in order:
1. BANS: words the rating tier forbids are swapped for clean substitutes
2. LEXICON: at least one topic word is present (inject "with <word>")
3. TONE: at least one word from the tone's table is present (inject a clause)
4. REQUIRE: tiers above G show edge (strong word, attitude or innuendo);
   missing edge is added as a short rating clause appended at the end,
   never by dropping profanity into arbitrary positions

Precedence:
- A Romantic tone removes every profanity requirement and bans all
  profanity at every rating.
- Bans always win over requirements: a rating clause that would break a
  ban is never used.

All injection goes through append_clause(), which fits the line back into
its bucket while keeping previously injected phrases (anchors) intact.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from punchline.config.logger import app_logger, log_repair
from punchline.services.caption_canon import (
    CLEAN_SUBSTITUTES,
    RATING_CLAUSES,
    TONE_CLAUSES,
    TONE_WORDS,
    VARIATION_CLAUSES,
    get_tier_pattern,
    normalize_rating,
    tone_key,
    word_pattern,
)
from punchline.services.context_lexicon import has_lexicon_word, injection_word
from punchline.services.structure_normalizer import append_clause, normalize_line
from punchline.services.tag_classifier import find_soft_tag_leaks


# ════════════════════════════════════════════════════════════════════════════
# RATING POLICY
# ════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RatingPolicy:
    """Which tiers a rating bans and which evidence groups satisfy its requirement."""
    rating: str
    bans: Tuple[str, ...] = ()
    requires_any: Tuple[str, ...] = ()

    @property
    def requires_edge(self) -> bool:
        return bool(self.requires_any)


_BASE_POLICIES: Dict[str, RatingPolicy] = {
    "G": RatingPolicy("G", bans=("strong", "mild", "sexual")),
    "PG-13": RatingPolicy("PG-13", bans=("strong", "sexual"), requires_any=("mild", "attitude", "suggestive")),
    "R": RatingPolicy("R", requires_any=("strong", "attitude")),
    "Explicit": RatingPolicy("Explicit", requires_any=("strong", "sexual", "suggestive")),
}


def rating_policy(rating: str, tone: str = "") -> RatingPolicy:
    """
    Effective policy for a rating/tone pair.

    Romantic tone drops requirements and adds strong and mild profanity to
    the bans, keeping whatever the rating already banned.
    """
    base = _BASE_POLICIES[normalize_rating(rating)]
    if tone_key(tone) != "romantic":
        return base
    bans = tuple(dict.fromkeys(base.bans + ("strong", "mild")))
    return RatingPolicy(base.rating, bans=bans, requires_any=())


def banned_terms_found(text: str, policy: RatingPolicy) -> List[str]:
    found: List[str] = []
    for tier in policy.bans:
        found.extend(m.group(0) for m in get_tier_pattern(tier).finditer(text))
    return found


def has_edge(text: str, policy: RatingPolicy) -> bool:
    """True when text shows evidence for any required group not also banned."""
    if not policy.requires_edge:
        return True
    groups = [g for g in policy.requires_any if g not in policy.bans]
    return any(get_tier_pattern(g).search(text) for g in groups)


def _match_case(original: str, replacement: str) -> str:
    if original.isupper() and len(original) > 1:
        return replacement.upper()
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def scrub_banned(text: str, policy: RatingPolicy) -> str:
    """Replace every banned term with its clean substitute."""
    for tier in policy.bans:
        pattern = get_tier_pattern(tier)

        def _sub(match: re.Match) -> str:
            base = match.group(1).lower()
            base = re.sub(r"\s+", " ", base)
            return _match_case(match.group(0), CLEAN_SUBSTITUTES.get(base, "heck"))

        text = pattern.sub(_sub, text)
    return text


def _clause_allowed(clause: str, policy: RatingPolicy, avoid: Sequence[str]) -> bool:
    if banned_terms_found(clause, policy):
        return False
    return not find_soft_tag_leaks(clause, avoid)


# ════════════════════════════════════════════════════════════════════════════
# TONE
# ════════════════════════════════════════════════════════════════════════════

def has_tone_word(text: str, tone: str) -> bool:
    words = TONE_WORDS.get(tone_key(tone))
    if not words:
        return True
    return bool(word_pattern(words).search(text))


# ════════════════════════════════════════════════════════════════════════════
# ENFORCEMENT
# ════════════════════════════════════════════════════════════════════════════

@dataclass
class ContentResult:
    text: str
    actions: List[str] = field(default_factory=list)
    anchors: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)


def _inject_first(
    text: str,
    clauses: Sequence[str],
    lo: int,
    hi: int,
    anchors: List[str],
    policy: RatingPolicy,
    avoid: Sequence[str],
    keep: Sequence[str],
) -> Tuple[str, Optional[str]]:
    """Try each clause in order and return the first one that survives fitting."""
    for clause in clauses:
        if not _clause_allowed(clause, policy, avoid):
            continue
        new_text, ok = append_clause(text, clause, lo, hi, protected=anchors, avoid=avoid, keep=keep)
        if ok:
            return new_text, clause
    return text, None


def enforce_content(
    line: str,
    rating: str,
    tone: str,
    topic: str,
    lo: int,
    hi: int,
    soft_tags: Sequence[str] = (),
    anchors: Iterable[str] = (),
    keep: Sequence[str] = (),
) -> ContentResult:
    """
    Enforce rating, tone and topic vocabulary on one line.

    Args:
        line: text already normalized to its bucket
        rating: G, PG-13, R or Explicit (loose spellings accepted)
        tone: tone label; tones without a word table add no requirement
        topic: context lexicon topic id
        lo, hi: the line's bucket
        soft_tags: words that must not be introduced
        anchors: phrases already injected that must survive
        keep: hard tags, never treated as dangling by the normalizer

    Returns:
        ContentResult with the rewritten text, the actions taken, every new
        anchor and any requirement that could not be met.
    """
    policy = rating_policy(rating, tone)
    result = ContentResult(text=normalize_line(line, lo, hi, avoid=soft_tags, keep=keep))
    current_anchors = list(anchors)

    # 1. Bans
    scrubbed = scrub_banned(result.text, policy)
    if scrubbed != result.text:
        log_repair("ban", result.text, scrubbed, policy.rating)
        result.actions.append("ban_scrubbed")
        result.text = normalize_line(scrubbed, lo, hi, avoid=soft_tags, keep=keep)

    # 2. Lexicon grounding
    if not has_lexicon_word(result.text, topic):
        word = injection_word(topic, avoid=soft_tags)
        clause = f"with {word}"
        text, used = _inject_first(result.text, [clause, word], lo, hi, current_anchors, policy, soft_tags, keep)
        if used:
            result.text = text
            current_anchors.append(used)
            result.anchors.append(used)
            result.actions.append("lexicon_injected")
        else:
            result.unresolved.append("context.lexicon_missing")

    # 3. Tone words
    if not has_tone_word(result.text, tone):
        clauses = TONE_CLAUSES.get(tone_key(tone), [])
        text, used = _inject_first(result.text, clauses, lo, hi, current_anchors, policy, soft_tags, keep)
        if used:
            result.text = text
            current_anchors.append(used)
            result.anchors.append(used)
            result.actions.append("tone_injected")
        else:
            result.unresolved.append("tone.missing")

    # 4. Required edge (checked after tone, a Savage clause may already count)
    if not has_edge(result.text, policy):
        clauses = RATING_CLAUSES.get(policy.rating, [])
        text, used = _inject_first(result.text, clauses, lo, hi, current_anchors, policy, soft_tags, keep)
        if used:
            result.text = text
            current_anchors.append(used)
            result.anchors.append(used)
            result.actions.append("rating_injected")
        else:
            result.unresolved.append("rating.edge_missing")

    # Ban always wins: a final scrub in case fitting exposed anything
    final = scrub_banned(result.text, policy)
    if final != result.text:
        result.text = normalize_line(final, lo, hi, avoid=soft_tags, keep=keep)

    if result.unresolved:
        app_logger.debug(f"Content enforcement left unresolved: {result.unresolved} for {result.text!r}")
    return result


def content_violations(text: str, rating: str, tone: str, topic: str) -> List[str]:
    """Issue codes for a finished line (read-only check used by the scorer)."""
    policy = rating_policy(rating, tone)
    issues: List[str] = []
    if banned_terms_found(text, policy):
        issues.append("rating.banned_term")
    elif not has_edge(text, policy):
        issues.append("rating.edge_missing")
    if not has_lexicon_word(text, topic):
        issues.append("context.lexicon_missing")
    if not has_tone_word(text, tone):
        issues.append("tone.missing")
    return issues


# ════════════════════════════════════════════════════════════════════════════
# BATCH DEDUPE
# ════════════════════════════════════════════════════════════════════════════

def _word_set(text: str) -> set:
    return set(re.findall(r"[a-z0-9']+", text.lower()))


def jaccard_similarity(a: str, b: str) -> float:
    sa, sb = _word_set(a), _word_set(b)
    if not sa and not sb:
        return 1.0
    return len(sa & sb) / len(sa | sb)


def vary_line(
    text: str,
    lo: int,
    hi: int,
    protected: Sequence[str] = (),
    soft_tags: Sequence[str] = (),
) -> Tuple[str, bool]:
    """Append the first variation clause the line does not already carry and that fits."""
    for clause in VARIATION_CLAUSES:
        if clause in text.lower():
            continue
        new_text, ok = append_clause(text, clause, lo, hi, protected=list(protected), avoid=soft_tags)
        if ok:
            log_repair("dedupe", text, new_text, clause)
            return new_text, True
    return text, False


def diversify_duplicates(
    lines: List[str],
    bounds: Sequence[Tuple[int, int]],
    anchors: Sequence[Sequence[str]] = (),
    soft_tags: Sequence[str] = (),
    threshold: float = 0.8,
) -> Tuple[List[str], List[int]]:
    """
    Make near-duplicate lines distinct.

    A line whose word-set Jaccard similarity with any earlier line exceeds
    threshold gets a variation clause appended. Returns (lines, changed_indices).
    """
    out = list(lines)
    changed: List[int] = []
    for j in range(1, len(out)):
        if not any(jaccard_similarity(out[i], out[j]) > threshold for i in range(j)):
            continue
        lo, hi = bounds[j]
        protected = list(anchors[j]) if j < len(anchors) else []
        new_text, ok = vary_line(out[j], lo, hi, protected=protected, soft_tags=soft_tags)
        if ok:
            out[j] = new_text
            changed.append(j)
    return out, changed
