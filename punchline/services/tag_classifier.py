"""
Tag Classifier — hard vs soft keyword split.

Raw tag input is a comma-separated string typed by a user:

    "Jesse", @Mike, old, so drunk

- HARD tags are wrapped in matching quotes or prefixed with @. They must
  appear verbatim in the output and keep their original casing.
- SOFT tags are bare words. They only bias style and must never leak
  verbatim into a caption, so they are case-folded for matching.

Curly quotes are normalized to straight quotes before classification and
empty tokens are dropped. A soft token that duplicates a hard tag is dropped
so the two sets stay disjoint.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from punchline.config.logger import app_logger
from punchline.models.caption import TagSet


_CURLY_QUOTES = {
    "“": '"',
    "”": '"',
    "„": '"',
    "‘": "'",
    "’": "'",
    "‚": "'",
    "«": '"',
    "»": '"',
}

# Words that only modify the soft tag after them and go with it
INTENSIFIERS = ("so", "very", "too", "really", "super", "extra", "kinda", "pretty")


def normalize_quotes(text: str) -> str:
    for curly, straight in _CURLY_QUOTES.items():
        text = text.replace(curly, straight)
    return text


def _classify_token(token: str):
    """Return ("hard"|"soft", value) for a non-empty token, or None."""
    token = token.strip()
    if not token:
        return None

    if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
        inner = token[1:-1].strip()
        return ("hard", inner) if inner else None

    if token.startswith("@"):
        inner = token[1:].strip().strip("'\"").strip()
        return ("hard", inner) if inner else None

    inner = token.strip("'\"").strip()
    return ("soft", inner.casefold()) if inner else None


def classify_tag_list(tokens: Iterable[str]) -> TagSet:
    """Classify already-split tokens."""
    hard: List[str] = []
    soft: List[str] = []
    for raw in tokens:
        result = _classify_token(normalize_quotes(raw or ""))
        if result is None:
            continue
        kind, value = result
        (hard if kind == "hard" else soft).append(value)
    return TagSet.from_lists(hard, soft)


def classify_tags(raw: str) -> TagSet:
    """
    Split a raw comma-separated tag string into a TagSet.

    Pure function: same input, same TagSet.
    """
    if not raw or not raw.strip():
        return TagSet()
    tags = classify_tag_list(normalize_quotes(raw).split(","))
    app_logger.debug(f"Classified tags: hard={list(tags.hard)} soft={list(tags.soft)}")
    return tags


# ════════════════════════════════════════════════════════════════════════════
# SOFT TAG LEAK GUARD
# ════════════════════════════════════════════════════════════════════════════

def _soft_regex(tag: str) -> re.Pattern:
    body = r"\s+".join(re.escape(part) for part in tag.split())
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def find_soft_tag_leaks(text: str, soft_tags: Sequence[str]) -> List[str]:
    """Soft tags appearing verbatim (case-insensitive, word-bounded) in text."""
    return [tag for tag in soft_tags if tag and _soft_regex(tag).search(text)]


def _strip_regex(tag: str) -> re.Pattern:
    """Soft tag plus an intensifier that would be left hanging ("so old")."""
    body = r"\s+".join(re.escape(part) for part in tag.split())
    return re.compile(rf"(?:(?<!\w)(?:{'|'.join(INTENSIFIERS)})\s+)?(?<!\w)({body})(?!\w)", re.IGNORECASE)


def strip_soft_tags(text: str, soft_tags: Sequence[str], protected: Sequence[str] = ()) -> str:
    """
    Delete verbatim soft tag echoes and collapse the gap.

    Soft tags that are contained in a protected phrase (a hard tag like
    "Old Tom") are left alone inside that phrase.
    """
    if not soft_tags:
        return text

    # Longest first so "so old" goes before "old"
    for tag in sorted((t for t in soft_tags if t), key=len, reverse=True):
        if not _soft_regex(tag).search(text):
            continue
        spans = []
        for phrase in protected:
            if phrase:
                spans.extend(m.span() for m in _soft_regex(phrase).finditer(text))

        def _remove(match, _spans=spans):
            inside = any(s <= match.start(1) and match.end(1) <= e for s, e in _spans)
            return match.group(0) if inside else " "

        text = _strip_regex(tag).sub(_remove, text)
    return re.sub(r"\s+([,.;:!?])", r"\1", re.sub(r"\s+", " ", text)).strip()
