"""
Hard-Tag Distribution Enforcer — every hard tag in at least K lines.

Coverage is a case-insensitive substring check: a line covers the batch's
hard tags when it contains every one of them. When fewer than K lines
(default 3 of 4) are covered, lines lacking coverage are injected in order
until K is reached, and no further.

Injection strategy rotates with the line index so the batch doesn't read
as four copies of the same trick:
    index % 3 == 0  FRONT  tag leads the line (after a stencil opener if any)
    index % 3 == 1  MID    "with TAG" after the first verb-like word
    index % 3 == 2  TAIL   "with TAG" clause before the terminal period

After each injection the line is fitted (protecting previous anchors) and
re-normalized; if the tag did not survive, the other strategies are tried.
A placement that cuts the line down to a stub of its own words counts as
not surviving. When no strategy fits with every anchor kept, the line is
retried with only stencil openers and tags protected, so a tone or rating
clause gives way to the tag.
If K still cannot be reached the result is flagged exhausted, which the
pipeline reports as a retry reason instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from punchline.config.logger import app_logger, log_repair
from punchline.config.settings import settings
from punchline.models.caption import LengthBucket
from punchline.services.structure_normalizer import (
    capitalize_first,
    first_clause,
    fit_protected,
    keeps_substance,
    normalize_line,
    strip_banned_punctuation,
)


EXHAUSTED_REASON = "hard_tag_coverage_exhausted"

# Coverage reached during injection but lost to the final ban or soft tag guard
REMOVED_BY_GUARD_REASON = "hard_tag_removed_by_ban"

VERB_HINTS = frozenset({
    "is", "was", "are", "were", "be", "been", "got", "gets", "get", "went", "goes",
    "made", "makes", "has", "had", "have", "did", "does", "said", "says", "thinks",
    "wants", "needs", "tried", "tries", "took", "takes", "saw", "sees", "ate",
    "eats", "showed", "shows", "brought", "left", "called", "turned", "became",
})


@dataclass
class HardTagResult:
    lines: List[str]
    coverage: int
    required: int
    injected: List[int] = field(default_factory=list)
    strategies: Dict[int, str] = field(default_factory=dict)
    relaxed: List[int] = field(default_factory=list)
    exhausted: bool = False
    log: List[str] = field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return self.coverage >= self.required


def line_covers(line: str, hard_tags: Sequence[str]) -> bool:
    lowered = line.lower()
    return all(tag.lower() in lowered for tag in hard_tags)


def count_coverage(lines: Sequence[str], hard_tags: Sequence[str]) -> int:
    if not hard_tags:
        return len(lines)
    return sum(1 for line in lines if line_covers(line, hard_tags))


# ════════════════════════════════════════════════════════════════════════════
# INJECTION STRATEGIES
# Each takes the sentence body (no period) and returns the new body.
# ════════════════════════════════════════════════════════════════════════════

def _lower_first(text: str, keep: Sequence[str]) -> str:
    first = text.split(" ", 1)[0] if text else ""
    if not first or first == "I" or first.startswith("I'"):
        return text
    if any(first.lower() == k.split(" ", 1)[0].lower() for k in keep if k):
        return text
    if first[1:] == first[1:].lower():
        return text[0].lower() + text[1:]
    return text


def inject_front(body: str, phrase: str, openers: Sequence[str], keep: Sequence[str] = ()) -> str:
    """Lead with the tag, after a stencil opener when the line starts with one."""
    for opener in sorted(openers, key=len, reverse=True):
        if opener and body.lower().startswith(opener.lower() + " "):
            rest = body[len(opener) + 1:]
            return f"{body[:len(opener)]} {phrase} says {rest}"
    return f"{phrase} says {_lower_first(body, keep)}"


def inject_mid(body: str, phrase: str, openers: Sequence[str] = (), keep: Sequence[str] = ()) -> str:
    """Insert "with TAG" after the first verb-like word (or at the middle)."""
    words = body.split(" ")
    if len(words) < 2:
        return f"{body} with {phrase}"

    start = 0
    for opener in sorted(openers, key=len, reverse=True):
        if opener and body.lower().startswith(opener.lower() + " "):
            start = len(opener.split())
            break

    for i in range(start, len(words) - 1):
        word = re.sub(r"[^\w']", "", words[i]).lower()
        if word in VERB_HINTS or (len(word) > 3 and word.endswith("ed")):
            return " ".join(words[:i + 1] + ["with", phrase] + words[i + 1:])

    middle = max(start + 1, len(words) // 2)
    return " ".join(words[:middle] + ["with", phrase] + words[middle:])


def inject_tail(body: str, phrase: str, openers: Sequence[str] = (), keep: Sequence[str] = ()) -> str:
    """Append "with TAG" (or "for TAG" when the line already leans on "with")."""
    joiner = "for" if re.search(r"\bwith\b", body, re.IGNORECASE) else "with"
    return f"{body} {joiner} {phrase}"


STRATEGIES: List[Tuple[str, Callable[..., str]]] = [
    ("front", inject_front),
    ("mid", inject_mid),
    ("tail", inject_tail),
]


def _strategy_order(index: int) -> List[Tuple[str, Callable[..., str]]]:
    start = index % len(STRATEGIES)
    return STRATEGIES[start:] + STRATEGIES[:start]


# ════════════════════════════════════════════════════════════════════════════
# ENFORCEMENT
# ════════════════════════════════════════════════════════════════════════════

def enforce_hard_tags(
    lines: Sequence[str],
    hard_tags: Sequence[str],
    buckets: Sequence[LengthBucket],
    min_lines: Optional[int] = None,
    anchors: Optional[Sequence[Sequence[str]]] = None,
    openers: Sequence[str] = (),
    avoid: Sequence[str] = (),
) -> HardTagResult:
    """
    Guarantee at least min_lines lines contain every hard tag.

    Args:
        lines: normalized lines, one per bucket
        hard_tags: tags that must appear verbatim
        buckets: length bucket per line
        min_lines: K, defaults to settings.HARD_TAG_MIN_LINES (capped at len(lines))
        anchors: per-line phrases that must survive re-fitting
        openers: known stencil openers, used by the front strategy
        avoid: soft tags fillers must not introduce

    Returns:
        HardTagResult; exhausted=True when K could not be reached.
    """
    out = list(lines)
    tags = [t for t in hard_tags if t and t.strip()]
    k = settings.HARD_TAG_MIN_LINES if min_lines is None else min_lines
    k = max(0, min(k, len(out)))
    result = HardTagResult(lines=out, coverage=count_coverage(out, tags), required=k if tags else 0)

    if not tags or result.coverage >= k:
        return result

    line_anchors = [list(a) for a in anchors] if anchors else [[] for _ in out]
    opener_set = {o.lower() for o in openers if o}

    for index, line in enumerate(out):
        if result.coverage >= k:
            break
        if line_covers(line, tags):
            continue

        missing = [t for t in tags if t.lower() not in line.lower()]
        phrase = " and ".join(missing)
        bucket = buckets[index]
        body = first_clause(strip_banned_punctuation(line))

        # Hard tags outrank tone and rating clauses: when nothing fits with
        # every anchor kept, only openers and tags stay protected.
        tiers = [line_anchors[index]]
        structural = [a for a in line_anchors[index] if a.lower() in opener_set or a in tags]
        if structural != line_anchors[index]:
            tiers.append(structural)

        placed = False
        for tier, kept_anchors in enumerate(tiers):
            protected = kept_anchors + missing + [f"with {phrase}", f"for {phrase}", f"{phrase} says"]
            keep = list(tags) + kept_anchors
            for name, strategy in _strategy_order(index):
                candidate = capitalize_first(strategy(body, phrase, openers, keep))
                fitted = fit_protected(candidate, bucket.hi, protected)
                repaired = normalize_line(fitted, bucket.lo, bucket.hi, avoid=avoid, keep=keep)
                if not line_covers(repaired, tags):
                    continue
                if not all(a.lower() in repaired.lower() for a in kept_anchors):
                    continue
                if not keeps_substance(body, repaired, protected):
                    continue
                log_repair("hard_tag", line, repaired, name)
                out[index] = repaired
                result.injected.append(index)
                result.strategies[index] = name
                result.coverage += 1
                if tier:
                    result.relaxed.append(index)
                    result.log.append(f"line {index}: dropped clause anchors to fit {missing}")
                result.log.append(f"line {index}: injected {missing} via {name}")
                placed = True
                break
            if placed:
                break

        if not placed:
            result.log.append(f"line {index}: no strategy kept {missing} inside {bucket.label}")

    if result.coverage < k:
        result.exhausted = True
        result.log.append(EXHAUSTED_REASON)
        app_logger.warning(
            f"Hard tag coverage exhausted: {result.coverage}/{k} lines carry {tags}"
        )
    return result
