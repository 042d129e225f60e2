"""
Tag Sanitizer — unsafe user tags swapped for suggestions.

Some tags a user types would steer the generator into stereotypes, slurs or
self-harm territory no matter how the caption is phrased. Those tags are
dropped from the batch before any repair runs and reported back with a few
safe alternatives the user can pick instead:

    "runs like a girl"  -> ["awkward running", "clumsy sprint", ...]
    "redneck"           -> ["rural", "country", ...]

Known phrases are matched as substrings of the lowercased tag. Anything that
only matches a broader pattern gets generic alternatives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from punchline.config.logger import app_logger
from punchline.models.caption import TagSet


PHRASE_REASON = '"{phrase}" may violate content policies due to stereotypes or offensive language'
PATTERN_REASON = "Contains language that may violate content safety policies"
GENERIC_ALTERNATIVES = ("inappropriate content", "safe alternative", "family-friendly option")


# Phrase -> safe alternatives, checked in order
PROBLEMATIC_TAGS: Dict[str, Tuple[str, ...]] = {
    # Gender stereotypes
    "punches like a girl": ("weak punches", "sloppy swing", "awkward jabs", "tentative strikes"),
    "throws like a girl": ("awkward throws", "weak throws", "clumsy tosses", "poor form"),
    "runs like a girl": ("awkward running", "clumsy sprint", "poor form", "unsteady pace"),
    "fights like a girl": ("weak fighting", "poor technique", "awkward combat", "tentative strikes"),
    "dumb blonde": ("airhead", "ditzy", "absent-minded", "scatterbrained"),
    "crazy woman": ("dramatic person", "over-reactive", "emotional", "intense personality"),
    # Ethnic stereotypes
    "lazy black": ("unmotivated", "sluggish", "inactive", "low energy"),
    "cheap jew": ("frugal", "penny-pinching", "cost-conscious", "budget-minded"),
    "ghetto": ("low-budget", "cheap", "rough around edges", "unrefined"),
    "redneck": ("rural", "country", "down-to-earth", "simple"),
    "trailer trash": ("low-class", "rough", "unrefined", "basic"),
    # Self-harm
    "kill yourself": ("give up", "quit trying", "stop bothering", "move on"),
    "want to die": ("exhausted", "overwhelmed", "fed up", "at wit's end"),
    "suicide": ("giving up", "quitting", "surrendering", "throwing in towel"),
    # Sexual insults
    "sluts": ("party people", "social butterflies", "outgoing types", "free spirits"),
    "whores": ("expensive tastes", "high maintenance", "demanding", "picky"),
}

PROBLEMATIC_PATTERNS = [
    re.compile(
        r"\b(hate|kill|murder|destroy)\s+(all\s+)?"
        r"(women|men|blacks|whites|jews|muslims|christians|gays|trans)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(kill|hurt|harm)\s+(myself|yourself|themselves)\b", re.IGNORECASE),
    re.compile(r"\b(torture|mutilate|dismember|decapitate)\b", re.IGNORECASE),
    re.compile(r"\b(rape|sexual assault|molest)\b", re.IGNORECASE),
    re.compile(r"\b(meth|heroin|cocaine|crack)\s+(addict|user|dealer)\b", re.IGNORECASE),
]


@dataclass(frozen=True)
class TagSuggestion:
    original_tag: str
    alternatives: Tuple[str, ...] = field(default_factory=tuple)
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_tag": self.original_tag,
            "alternatives": list(self.alternatives),
            "reason": self.reason,
        }


def sanitize_tag(tag: str) -> Optional[TagSuggestion]:
    """Return a suggestion for an unsafe tag, or None when the tag is fine."""
    normalized = (tag or "").lower().strip()
    if not normalized:
        return None

    for phrase, alternatives in PROBLEMATIC_TAGS.items():
        if phrase in normalized:
            return TagSuggestion(tag, alternatives, PHRASE_REASON.format(phrase=phrase))

    for pattern in PROBLEMATIC_PATTERNS:
        if pattern.search(normalized):
            return TagSuggestion(tag, GENERIC_ALTERNATIVES, PATTERN_REASON)

    return None


def sanitize_tags(tags: Sequence[str]) -> Tuple[List[str], List[TagSuggestion]]:
    """Split tags into (safe_tags, suggestions), order kept."""
    safe: List[str] = []
    suggestions: List[TagSuggestion] = []
    for tag in tags:
        suggestion = sanitize_tag(tag)
        if suggestion:
            suggestions.append(suggestion)
        else:
            safe.append(tag)
    return safe, suggestions


def sanitize_tag_set(tags: TagSet) -> Tuple[TagSet, List[TagSuggestion]]:
    """Drop unsafe hard and soft tags. Returns the cleaned set and what was dropped."""
    hard, hard_suggestions = sanitize_tags(tags.hard)
    soft, soft_suggestions = sanitize_tags(tags.soft)
    suggestions = hard_suggestions + soft_suggestions
    for suggestion in suggestions:
        app_logger.warning(f"Unsafe tag dropped: '{suggestion.original_tag}' ({suggestion.reason})")
    return TagSet.from_lists(hard, soft), suggestions


def validate_tag_input(text: str) -> Dict[str, Any]:
    """Check one tag as it is typed. Returns is_valid plus warning and suggestions when unsafe."""
    suggestion = sanitize_tag(text)
    if suggestion is None:
        return {"is_valid": True}
    return {
        "is_valid": False,
        "warning": suggestion.reason,
        "suggestions": list(suggestion.alternatives),
    }
