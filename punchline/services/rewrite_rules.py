"""
Rewrite rule tables for line repair.

Every "if the text matches X, rewrite it as Y" decision the normalizer makes
lives here as an ordered list of RewriteRule records. Tables are processed in
list order and the first applicable rule wins, so adding a rule never
requires touching control flow.

Ending rules operate on the sentence body WITHOUT its terminal period.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Collection, Dict, List, Match, Optional, Pattern, Union


Rewrite = Union[str, Callable[[Match], Optional[str]]]


@dataclass(frozen=True)
class RewriteRule:
    """
    One matcher/rewrite pair.

    rewrite is either a replacement template (re.Match.expand syntax) or a
    callable returning the replacement, or None to decline the match.
    guard_group names the regex group checked against the caller's keep-set:
    a protected word is never rewritten.
    """
    name: str
    pattern: Pattern[str]
    rewrite: Rewrite
    guard_group: int = 1

    def apply(self, text: str, keep: Collection[str] = ()) -> Optional[str]:
        """Rewrite the first match, or return None when the rule does not apply."""
        match = self.pattern.search(text)
        if not match:
            return None
        if self.guard_group and match.group(self.guard_group).lower() in keep:
            return None
        if callable(self.rewrite):
            replacement = self.rewrite(match)
        else:
            replacement = match.expand(self.rewrite)
        if replacement is None:
            return None
        return text[:match.start()] + replacement + text[match.end():]

    def apply_all(self, text: str) -> str:
        """Rewrite every match (cleanup rules)."""
        if callable(self.rewrite):
            return self.pattern.sub(lambda m: self.rewrite(m) or m.group(0), text)
        return self.pattern.sub(self.rewrite, text)


def apply_first(rules: List[RewriteRule], text: str, keep: Collection[str] = ()) -> tuple:
    """
    Apply the first matching rule in priority order.

    Returns (new_text, rule_name) or (text, None) when nothing matched.
    """
    for rule in rules:
        rewritten = rule.apply(text, keep)
        if rewritten is not None and rewritten != text:
            return rewritten, rule.name
    return text, None


# ════════════════════════════════════════════════════════════════════════════
# COMPLETION POOL
# Closing clause keyed by the dangling word it replaces.
# Every completion ends on a word that is itself a clean ending.
# ════════════════════════════════════════════════════════════════════════════

COMPLETIONS: Dict[str, str] = {
    # conjunctions
    "and": "and nobody asked",
    "but": "but nobody cares",
    "or": "or whatever",
    "so": "so that happened",
    "because": "because of course",
    "then": "then chaos",
    "than": "than ever",
    "if": "if anything",
    "when": "when it counts",
    "until": "until the end",
    # prepositions
    "with": "with zero success",
    "of": "of pure chaos",
    "to": "to go wrong",
    "for": "for no reason",
    "at": "at full volume",
    "in": "in real time",
    "on": "on repeat",
    "by": "by a mile",
    "as": "as usual",
    "from": "from scratch",
    "into": "into chaos",
    "about": "about it",
    "like": "like always",
    "without": "without warning",
    # articles and possessives
    "the": "the whole time",
    "a": "a lot",
    "an": "an hour late",
    "my": "my whole life",
    "your": "your whole life",
    "his": "his whole life",
    "her": "her whole life",
    "their": "their whole life",
    "our": "our whole life",
    "its": "its whole life",
    "this": "this again",
    # adverbs and pronouns that cannot close a sentence
    "even": "even now",
    "that": "that much",
    "just": "just saying",
    "very": "very much",
    "i": "I said",
}

# Short words that legitimately close a sentence
SHORT_WORD_WHITELIST = frozenset({
    "me", "it", "us", "up", "go", "do", "no", "ok", "tv", "ex", "oh", "hi",
    "yo", "ya", "ma", "pa", "ai", "uk", "la", "ny", "dj", "pr", "ad", "be",
    "is", "am", "za", "ha", "ow", "pm", "vs",
})

# Known clipped words and what they were before the cut
FRAGMENT_FIXES: Dict[str, str] = {
    "pl": "play",
    "d": "down",
    "g": "game",
    "ch": "chaos",
    "th": "the end",
    "wh": "whatever",
}

_ARTICLE_FOLLOWERS = "the|a|an|my|your|his|her|their|our|its|this|that"
_JOINERS = "and|but|or|so|with|to|of|for|because|then|at|in|on|from|into|like"


def is_dangling_word(word: str, keep: Collection[str] = ()) -> bool:
    """True when word cannot end a sentence (connector or clipped fragment)."""
    w = word.lower().strip("'\"")
    if not w or w in keep:
        return False
    if w in COMPLETIONS:
        return True
    return len(w) <= 2 and w.isalpha() and w not in SHORT_WORD_WHITELIST


def _complete_joiner(match: Match) -> str:
    return COMPLETIONS[match.group(1).lower()]


def _complete_word(match: Match) -> Optional[str]:
    return COMPLETIONS.get(match.group(1).lower())


def _fix_fragment(match: Match) -> Optional[str]:
    word = match.group(1)
    lowered = word.lower()
    if lowered in SHORT_WORD_WHITELIST or lowered in COMPLETIONS:
        return None
    return FRAGMENT_FIXES.get(lowered, "show")


ENDING_RULES: List[RewriteRule] = [
    RewriteRule(
        name="joiner_plus_article",
        pattern=re.compile(rf"\b({_JOINERS})\s+(?:{_ARTICLE_FOLLOWERS})$", re.IGNORECASE),
        rewrite=_complete_joiner,
    ),
    RewriteRule(
        name="dangling_word",
        pattern=re.compile(
            r"\b(" + "|".join(sorted(COMPLETIONS, key=len, reverse=True)) + r")$",
            re.IGNORECASE,
        ),
        rewrite=_complete_word,
    ),
    RewriteRule(
        name="clipped_fragment",
        pattern=re.compile(r"(?<![\w'-])([A-Za-z]{1,2})$"),
        rewrite=_fix_fragment,
    ),
]


# ════════════════════════════════════════════════════════════════════════════
# CLEANUP RULES
# Applied everywhere in the line, in order.
# ════════════════════════════════════════════════════════════════════════════

CLEANUP_RULES: List[RewriteRule] = [
    RewriteRule(
        name="repeated_word",
        pattern=re.compile(r"\b(\w+)(?:\s+\1\b)+", re.IGNORECASE),
        rewrite=r"\1",
        guard_group=0,
    ),
    RewriteRule(
        name="space_before_apostrophe",
        pattern=re.compile(r"(\w)\s+'(s|re|ll|ve|d|m|t)\b", re.IGNORECASE),
        rewrite=r"\1'\2",
        guard_group=0,
    ),
]


def apply_cleanup(text: str) -> str:
    for rule in CLEANUP_RULES:
        text = rule.apply_all(text)
    return text
