"""
Stencil rendering — wrap a caption in its assigned voice.

A line is split into a setup and a punch at a natural boundary word, then
rendered through the voice template:

    "my cake collapsed but the candles survived"
    -> setup "my cake collapsed", punch "the candles survived"
    -> "Man listen my cake collapsed and next thing I know the candles survived."

The halves are trimmed from their tails until the stencil fits the line's
bucket, never removing injected anchors. When the full stencil cannot fit
without cutting a half down to a single content word,
rendering falls back to opener-only, then to the plain line. The result is
always re-run through the Structural Normalizer.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from punchline.config.logger import log_repair
from punchline.models.rotation import VoiceProfile
from punchline.services.rewrite_rules import is_dangling_word
from punchline.services.structure_normalizer import (
    contains_phrase,
    first_clause,
    fit_protected,
    keeps_substance,
    normalize_line,
    strip_banned_punctuation,
)


BOUNDARY_WORDS = ("but", "so", "and", "because", "then", "until", "except")

# Only this middle share of the text is searched for a boundary word
BOUNDARY_WINDOW = 0.6


def split_setup_punch(text: str, anchors: Sequence[str] = ()) -> Tuple[str, str]:
    """
    Split a caption into (setup, punch).

    The first boundary word whose position lies in the middle 60% of the
    text wins and is dropped (the voice connector replaces it). Without
    one, the split falls on the word boundary nearest the midpoint.
    Splits never fall inside an anchor phrase; when no split is possible
    the punch is empty.
    """
    body = first_clause(strip_banned_punctuation(text))
    words = body.split()
    if len(words) < 2:
        return body, ""

    length = len(body)
    margin = length * (1 - BOUNDARY_WINDOW) / 2
    lo_pos, hi_pos = margin, length - margin

    offset = 0
    positions = []
    for word in words:
        start = body.index(word, offset)
        positions.append(start)
        offset = start + len(word)

    in_anchor = _protected_words(words, anchors)

    for i, word in enumerate(words):
        if not (0 < i < len(words) - 1) or in_anchor[i]:
            continue
        if word.lower() in BOUNDARY_WORDS and lo_pos <= positions[i] <= hi_pos:
            return " ".join(words[:i]), " ".join(words[i + 1:])

    cuts = [i for i in range(1, len(words)) if not (in_anchor[i] and in_anchor[i - 1])]
    if not cuts:
        return body, ""
    midpoint = length / 2
    best = min(cuts, key=lambda i: abs(positions[i] - 1 - midpoint))
    return " ".join(words[:best]), " ".join(words[best:])


def _soften_start(half: str, keep: Sequence[str]) -> str:
    """Lower-case the first letter of a half that now sits mid-sentence."""
    if not half:
        return half
    first = half.split(" ", 1)[0]
    if first in ("I",) or first.startswith("I'"):
        return half
    if any(first.lower() == k.split(" ", 1)[0].lower() for k in keep if k):
        return half
    if first[:1].isupper() and first[1:] == first[1:].lower():
        return half[0].lower() + half[1:]
    return half


def _protected_words(half: List[str], anchors: Sequence[str]) -> List[bool]:
    joined = " ".join(half)
    mask = [False] * len(half)
    for anchor in anchors:
        if not anchor:
            continue
        pattern = r"\s+".join(re.escape(p) for p in anchor.split())
        for m in re.finditer(pattern, joined, re.IGNORECASE):
            pos = 0
            for i, word in enumerate(half):
                start, end = pos, pos + len(word)
                if start < m.end() and m.start() < end:
                    mask[i] = True
                pos = end + 1
    return mask


def _content_words(half: List[str]) -> int:
    return sum(1 for word in half if not is_dangling_word(word))


def _trim(half: List[str], mask: List[bool], idx: int) -> None:
    """Delete half[idx] and any dangling word the cut leaves exposed."""
    del half[idx]
    del mask[idx]
    idx -= 1
    while 0 <= idx < len(half) and len(half) > 1 and not mask[idx] and is_dangling_word(half[idx]):
        del half[idx]
        del mask[idx]
        idx -= 1


def _fit_halves(
    voice: VoiceProfile,
    setup: List[str],
    punch: List[str],
    max_len: int,
    anchors: Sequence[str],
) -> Optional[str]:
    """
    Trim both halves from their tails until the stencil fits max_len.

    Returns None when the stencil only fits by shrinking a half to a
    single content word, so the caller falls back to a simpler mode.
    """
    original = (len(setup), len(punch))
    setup, punch = list(setup), list(punch)
    while True:
        rendered = voice.stencil(" ".join(setup), " ".join(punch))
        if len(rendered) <= max_len:
            break

        setup_mask = _protected_words(setup, anchors)
        punch_mask = _protected_words(punch, anchors)
        setup_free = [i for i in range(1, len(setup)) if not setup_mask[i]]
        punch_free = [i for i in range(1, len(punch)) if not punch_mask[i]]
        if not setup_free and not punch_free:
            return None

        # Trim the longer half first so both keep some substance
        if setup_free and (len(" ".join(setup)) >= len(" ".join(punch)) or not punch_free):
            _trim(setup, setup_mask, setup_free[-1])
        else:
            _trim(punch, punch_mask, punch_free[-1])

    for half, size in zip((setup, punch), original):
        if len(half) < size and _content_words(half) <= 1:
            return None
    return rendered


def render_line(
    text: str,
    voice: Optional[VoiceProfile],
    lo: int,
    hi: int,
    anchors: Sequence[str] = (),
    avoid: Iterable[str] = (),
    keep: Sequence[str] = (),
) -> Tuple[str, str]:
    """
    Render text through voice and re-normalize.

    Returns (line, mode) where mode is "stencil", "opener" or "plain".
    Every anchor survives in the returned line.
    """
    avoid = list(avoid)
    anchors = [a for a in anchors if a]
    keep_all = list(keep) + anchors

    if voice is None:
        return normalize_line(text, lo, hi, avoid=avoid, keep=keep_all), "plain"

    setup, punch = split_setup_punch(text, anchors)
    if setup and punch:
        setup = _soften_start(setup, keep_all)
        punch = _soften_start(punch, keep_all)
        fitted = _fit_halves(voice, setup.split(), punch.split(), hi - 1, anchors)
        if fitted:
            line = normalize_line(fitted, lo, hi, avoid=avoid, keep=keep_all)
            required = anchors + [voice.opener, voice.connector]
            if line.lower().startswith(voice.opener.lower()) and all(contains_phrase(line, p) for p in required):
                log_repair("stencil", text, line, voice.id)
                return line, "stencil"

    body = first_clause(strip_banned_punctuation(text))
    opener_text = voice.opener_only(_soften_start(body, keep_all))
    fitted = fit_protected(opener_text, hi, anchors + [voice.opener])
    line = normalize_line(fitted, lo, hi, avoid=avoid, keep=keep_all)
    fixed = anchors + [voice.opener] + list(keep)
    if (
        line.lower().startswith(voice.opener.lower())
        and all(contains_phrase(line, p) for p in anchors)
        and keeps_substance(body, line, fixed)
    ):
        log_repair("stencil", text, line, f"{voice.id}:opener")
        return line, "opener"

    return normalize_line(text, lo, hi, avoid=avoid, keep=keep_all), "plain"
