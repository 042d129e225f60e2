"""
Structural Normalizer — line shape enforcement.

Every caption leaving the engine has the same shape:
1. Exactly one sentence, ending in a single period
2. No comma, em-dash, en-dash, semicolon or other banned punctuation
3. A capital first letter
4. A length inside the line's bucket [lo, hi], measured after all fixes
5. No word cut in half (one token longer than the bucket is the only
   case where a hard cut happens)

Algorithm (normalize_line):
    strip banned punctuation -> keep the first clause -> repair dangling
    endings via the rule table -> word-safe truncate to hi (dropping any
    dangling words the cut exposes) -> extend with filler clauses up to lo
    -> capitalize -> terminate

The function is deterministic and idempotent: normalizing its own output
returns the same string. Callers that inject phrases (lexicon words, hard
tags, stencil openers) fit them with fit_protected() first so the
normalizer's truncation never has to cut an injected phrase.
"""

from __future__ import annotations

import re
from typing import Collection, Iterable, List, Optional, Sequence, Set, Tuple

from punchline.config.logger import app_logger, log_repair
from punchline.models.caption import LengthBucket
from punchline.services.caption_canon import FILLER_CLAUSES, STALE_PHRASES
from punchline.services.rewrite_rules import (
    COMPLETIONS,
    ENDING_RULES,
    apply_cleanup,
    apply_first,
    is_dangling_word,
)
from punchline.services.tag_classifier import normalize_quotes


BANNED_PUNCTUATION = ",—–;:\"()[]{}*~|\\/"
_BANNED_RE = re.compile("[" + re.escape(BANNED_PUNCTUATION) + "]")
_SPACED_DASH_RE = re.compile(r"(?:^|\s)-+(?=\s|$)")
_TERMINATOR_RE = re.compile(r"[.!?…]+")
_LEADING_JUNK_RE = re.compile(r"^[^\w]+")
_TRAILING_JUNK_RE = re.compile(r"[^\w]+$")

# Used only when a candidate arrives with no usable words at all
SEED_LINE = "Nobody saw this coming"

# Clean endings for buckets too small for any repair, longest first
SHORT_FALLBACKS = (SEED_LINE, "Not again", "Wow", "Ok", "0")

MAX_REPAIR_PASSES = 4

# Words outside protected phrases a fitted line must keep
MIN_OWN_WORDS = 2


# ════════════════════════════════════════════════════════════════════════════
# CLEANING HELPERS
# ════════════════════════════════════════════════════════════════════════════

def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def strip_banned_punctuation(text: str) -> str:
    text = _SPACED_DASH_RE.sub(" ", text)
    return _collapse(_BANNED_RE.sub(" ", text))


def first_clause(text: str) -> str:
    """First non-empty sentence of text, without its terminator."""
    for part in _TERMINATOR_RE.split(text):
        part = _TRAILING_JUNK_RE.sub("", _LEADING_JUNK_RE.sub("", part.strip()))
        if part:
            return part
    return ""


def strip_category_leakage(text: str, category: str = "", subcategory: str = "") -> str:
    """Remove "Category > Subcategory" breadcrumbs the generator echoes back."""
    if category and subcategory:
        crumb = rf"{re.escape(category.strip())}\s*>\s*{re.escape(subcategory.strip())}"
        text = re.sub(crumb, " ", text, flags=re.IGNORECASE)
    text = text.replace(">", " ")
    return _collapse(text)


def strip_stale_phrases(text: str, phrases: Sequence[str] = STALE_PHRASES) -> str:
    """Remove canned openers and labels ("Here's a joke:", "Caption:")."""
    for phrase in phrases:
        body = r"\s*".join(re.escape(part) for part in phrase.split())
        text = re.sub(rf"(?<!\w){body}", " ", text, flags=re.IGNORECASE)
    return _collapse(text)


def capitalize_first(text: str) -> str:
    if text and text[0].islower():
        return text[0].upper() + text[1:]
    return text


def _keep_words(keep: Iterable[str]) -> Set[str]:
    """Closing word of each protected phrase; only a phrase's last word can end a line."""
    words: Set[str] = set()
    for phrase in keep:
        parts = (phrase or "").split()
        if parts:
            words.add(parts[-1].lower().strip("'\"."))
    return words


# ════════════════════════════════════════════════════════════════════════════
# ENDING REPAIR
# ════════════════════════════════════════════════════════════════════════════

def repair_ending(body: str, keep: Collection[str] = ()) -> str:
    """Replace dangling endings using the ordered rule table."""
    for _ in range(MAX_REPAIR_PASSES):
        repaired, rule = apply_first(ENDING_RULES, body, keep)
        if rule is None:
            break
        log_repair("ending", body, repaired, rule)
        body = repaired
    return body


def _clean_tail(words: List[str], keep: Collection[str]) -> List[str]:
    """Drop trailing punctuation and dangling words a cut exposed."""
    while words:
        last = _TRAILING_JUNK_RE.sub("", words[-1])
        if not last:
            words.pop()
            continue
        words[-1] = last
        if len(words) > 1 and is_dangling_word(last, keep):
            words.pop()
            continue
        break
    return words


# ════════════════════════════════════════════════════════════════════════════
# LENGTH FITTING
# ════════════════════════════════════════════════════════════════════════════

def truncate_word_safe(body: str, max_len: int, keep: Collection[str] = ()) -> str:
    """Cut body to at most max_len characters at a word boundary."""
    if len(body) <= max_len:
        return body

    words = body.split(" ")
    kept: List[str] = []
    length = 0
    for word in words:
        added = len(word) + (1 if kept else 0)
        if length + added > max_len:
            break
        kept.append(word)
        length += added

    if not kept:
        # Single token longer than the bucket
        return _TRAILING_JUNK_RE.sub("", body[:max_len]) or SEED_LINE[:max_len]

    kept = _clean_tail(kept, keep)
    if not kept:
        return SEED_LINE if len(SEED_LINE) <= max_len else SEED_LINE[:max_len].rstrip()
    if is_dangling_word(kept[-1], keep):
        completion = COMPLETIONS.get(kept[-1].lower())
        if completion and len(completion) <= max_len:
            return completion
        if len(SEED_LINE) <= max_len:
            return SEED_LINE
    return " ".join(kept)


def _last_word(body: str) -> str:
    return body.rsplit(" ", 1)[-1] if body else ""


def settle_ending(body: str, max_len: int, keep: Collection[str] = ()) -> str:
    """
    Make sure a fitted body does not close on a dangling word.

    Truncation can leave a single dangling token ("The", "Y") when the
    bucket is too small for any completion; such a body is repaired once
    more and, failing that, replaced by the longest short fallback that fits.
    """
    if body and not is_dangling_word(_last_word(body), keep):
        return body
    repaired = apply_cleanup(repair_ending(body, keep))
    if repaired and len(repaired) <= max_len and not is_dangling_word(_last_word(repaired), keep):
        return repaired
    for fallback in SHORT_FALLBACKS:
        if len(fallback) <= max_len:
            return fallback
    return body


def _pick_filler(body: str, max_len: int, avoid: Collection[str]) -> Optional[str]:
    lowered = body.lower()
    last_word = lowered.rsplit(" ", 1)[-1] if lowered else ""
    for filler in FILLER_CLAUSES:
        if filler in lowered:
            continue
        if filler.split(" ", 1)[0] == last_word:
            continue
        if any(re.search(rf"(?<!\w){re.escape(a)}(?!\w)", filler) for a in avoid if a):
            continue
        if len(body) + 1 + len(filler) <= max_len:
            return filler
    return None


def extend_to_minimum(body: str, lo: int, hi: int, avoid: Collection[str] = ()) -> str:
    """Append filler clauses until body plus period reaches lo."""
    avoid_lower = [a.lower() for a in avoid]
    while len(body) + 1 < lo:
        filler = _pick_filler(body, hi - 1, avoid_lower)
        if filler is None:
            app_logger.warning(f"Could not extend line to {lo} chars: {body!r}")
            break
        body = f"{body} {filler}" if body else filler
    return body


# ════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ════════════════════════════════════════════════════════════════════════════

def normalize_line(
    text: str,
    lo: int,
    hi: int,
    avoid: Collection[str] = (),
    keep: Iterable[str] = (),
) -> str:
    """
    Normalize text into a single sentence inside [lo, hi].

    Args:
        text: raw candidate text
        lo, hi: inclusive character range for the finished line
        avoid: words fillers must not introduce (soft tags)
        keep: phrases whose words are never treated as dangling (hard tags)

    Returns:
        A capitalized sentence ending in exactly one period.
    """
    keep_set = _keep_words(keep)

    body = strip_banned_punctuation(normalize_quotes(text or ""))
    body = first_clause(body)
    body = apply_cleanup(body)
    if not body:
        body = SEED_LINE

    body = apply_cleanup(repair_ending(body, keep_set))
    body = truncate_word_safe(body, hi - 1, keep_set)
    body = settle_ending(body, hi - 1, keep_set)
    body = extend_to_minimum(body, lo, hi, avoid)
    body = capitalize_first(body)
    return body + "."


def normalize_to_bucket(text: str, bucket: LengthBucket, avoid: Collection[str] = (), keep: Iterable[str] = ()) -> str:
    return normalize_line(text, bucket.lo, bucket.hi, avoid=avoid, keep=keep)


def _protected_mask(tokens: List[str], body: str, protected: Sequence[str]) -> List[bool]:
    spans: List[Tuple[int, int]] = []
    for phrase in protected:
        phrase = (phrase or "").strip().rstrip(".")
        if not phrase:
            continue
        pattern = r"\s+".join(re.escape(p) for p in phrase.split())
        spans.extend(m.span() for m in re.finditer(pattern, body, re.IGNORECASE))

    mask: List[bool] = []
    offset = 0
    for token in tokens:
        start = body.index(token, offset)
        end = start + len(token)
        offset = end
        mask.append(any(start < e and s < end for s, e in spans))
    return mask


def fit_protected(text: str, hi: int, protected: Sequence[str] = ()) -> str:
    """
    Shrink text to fit hi by deleting unprotected words.

    Words are removed right to left, skipping any word that belongs to a
    protected phrase; the first word goes last. A dangling word left in
    front of a cut ("my" in "says my which") is removed with it. Returns
    the body with a single terminal period. When every remaining word is
    protected the text is returned over-length and the normalizer's
    truncation decides.
    """
    body = _collapse(_TERMINATOR_RE.sub(" ", text or ""))
    if len(body) + 1 <= hi:
        return body + "."

    tokens = body.split(" ")
    mask = _protected_mask(tokens, body, protected)

    while len(" ".join(tokens)) + 1 > hi:
        removable = [i for i in range(len(tokens) - 1, 0, -1) if not mask[i]]
        if not removable:
            removable = [0] if tokens and not mask[0] and len(tokens) > 1 else []
        if not removable:
            break
        idx = removable[0]
        del tokens[idx]
        del mask[idx]
        _drop_exposed(tokens, mask, idx)

    return " ".join(tokens) + "."


def _drop_exposed(tokens: List[str], mask: List[bool], gap: int) -> None:
    """Remove unprotected dangling words sitting just left of a deletion point."""
    idx = gap - 1
    while 0 <= idx < len(tokens) and len(tokens) > 1 and not mask[idx]:
        if not is_dangling_word(_TRAILING_JUNK_RE.sub("", tokens[idx])):
            break
        del tokens[idx]
        del mask[idx]
        idx -= 1


def own_word_count(text: str, protected: Sequence[str] = ()) -> int:
    """Meaningful words of text that sit outside every protected phrase."""
    body = _collapse(_TERMINATOR_RE.sub(" ", text or ""))
    if not body:
        return 0
    tokens = body.split(" ")
    mask = _protected_mask(tokens, body, protected)
    count = 0
    for token, is_protected in zip(tokens, mask):
        word = _TRAILING_JUNK_RE.sub("", _LEADING_JUNK_RE.sub("", token))
        if word and not is_protected and not is_dangling_word(word):
            count += 1
    return count


def keeps_substance(before: str, after: str, protected: Sequence[str] = ()) -> bool:
    """False when fitting cut a line's own words below MIN_OWN_WORDS."""
    floor = min(MIN_OWN_WORDS, own_word_count(before, protected))
    return own_word_count(after, protected) >= floor


def contains_phrase(text: str, phrase: str) -> bool:
    return phrase.lower() in text.lower()


def append_clause(
    text: str,
    clause: str,
    lo: int,
    hi: int,
    protected: Sequence[str] = (),
    avoid: Collection[str] = (),
    keep: Iterable[str] = (),
) -> Tuple[str, bool]:
    """
    Append clause before the terminal period and re-normalize.

    Returns (new_text, survived). survived is False when the clause could
    not be kept inside the bucket, or only by cutting the line down to a
    stub of its own words; the original text is then returned unchanged.
    """
    body = first_clause(strip_banned_punctuation(text)) or text.rstrip(".")
    candidate = f"{body} {clause}"
    fixed = list(protected) + [clause]
    fitted = fit_protected(candidate, hi, fixed)
    result = normalize_line(fitted, lo, hi, avoid=avoid, keep=list(keep) + [clause])
    if not contains_phrase(result, clause):
        return text, False
    if not all(contains_phrase(result, p) for p in protected if p):
        return text, False
    if not keeps_substance(text, result, fixed + list(keep)):
        app_logger.debug(f"Clause {clause!r} would leave {text!r} without substance")
        return text, False
    log_repair("append", text, result, clause)
    return result, True


# ════════════════════════════════════════════════════════════════════════════
# FORMAT CHECKS (read-only)
# ════════════════════════════════════════════════════════════════════════════

def format_violations(text: str, lo: int, hi: int) -> List[str]:
    """Issue codes for every shape rule text breaks."""
    issues: List[str] = []
    if not (lo <= len(text) <= hi):
        issues.append("format.length")
    if text.count(".") != 1 or not text.endswith(".") or re.search(r"[!?…]", text):
        issues.append("format.terminator")
    if _BANNED_RE.search(text) or _SPACED_DASH_RE.search(text):
        issues.append("format.punctuation")
    if not text or not text[0].isupper() and text[0].isalpha():
        issues.append("format.capitalization")
    return issues


def ends_dangling(text: str, keep: Collection[str] = ()) -> bool:
    body = text.rstrip(".!? ")
    last = body.rsplit(" ", 1)[-1] if body else ""
    return is_dangling_word(last, _keep_words(keep)) if last else False
