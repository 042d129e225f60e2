"""
Duplicate History — repeat detection across batches.

Each session remembers the lines it has already delivered, tagged with the
category and subcategory they were written for. A new line repeats history
when its word-set Jaccard similarity with a remembered line of the same
category and subcategory exceeds the threshold (0.85 by default).

Only the most recent entries are kept (200 by default); older ones fall off
the front as new batches are recorded.
"""

from __future__ import annotations

import re
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence

from punchline.config.logger import app_logger
from punchline.config.settings import settings
from punchline.services.content_enforcer import jaccard_similarity
from punchline.utils.errors import ConfigurationError


def normalize_text(text: str) -> str:
    """Lowercase, punctuation to spaces, whitespace collapsed."""
    text = re.sub(r"[^\w\s']", " ", (text or "").lower())
    return re.sub(r"\s+", " ", text).strip()


def _group(value: str) -> str:
    return (value or "").strip().lower()


@dataclass(frozen=True)
class HistoryEntry:
    text: str
    category: str
    subcategory: str
    timestamp: float = field(default_factory=time.time)


class DuplicateHistory:
    """
    Bounded per-session line history.

    Usage:
        history = DuplicateHistory()
        repeats = history.find_duplicates(lines, "birthday", "milestone")
        ...
        history.add(lines, "birthday", "milestone")
    """

    def __init__(self, max_entries: Optional[int] = None, threshold: Optional[float] = None):
        max_entries = settings.DUPLICATE_HISTORY_SIZE if max_entries is None else max_entries
        threshold = settings.DUPLICATE_THRESHOLD if threshold is None else threshold
        if max_entries < 1:
            raise ConfigurationError(
                f"Duplicate history must hold at least one line, got {max_entries}",
                setting="DUPLICATE_HISTORY_SIZE",
            )
        if not 0.0 < threshold <= 1.0:
            raise ConfigurationError(
                f"Duplicate threshold must be in (0, 1], got {threshold}",
                setting="DUPLICATE_THRESHOLD",
            )
        self.max_entries = max_entries
        self.threshold = threshold
        self._entries: Deque[HistoryEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _same_group(self, category: str, subcategory: str) -> List[HistoryEntry]:
        cat, sub = _group(category), _group(subcategory)
        return [e for e in self._entries if e.category == cat and e.subcategory == sub]

    def is_duplicate(self, line: str, category: str = "", subcategory: str = "") -> bool:
        return bool(self.find_duplicates([line], category, subcategory))

    def find_duplicates(self, lines: Sequence[str], category: str = "", subcategory: str = "") -> List[int]:
        """Indices of lines too similar to a remembered line of the same category and subcategory."""
        previous = self._same_group(category, subcategory)
        if not previous:
            return []
        matches: List[int] = []
        for index, line in enumerate(lines):
            text = normalize_text(line)
            if not text:
                continue
            if any(jaccard_similarity(text, entry.text) > self.threshold for entry in previous):
                matches.append(index)
        if matches:
            app_logger.info(f"History repeats for '{category} > {subcategory}': lines {matches}")
        return matches

    def add(self, lines: Sequence[str], category: str = "", subcategory: str = "") -> None:
        """Remember delivered lines. The oldest entries drop off past max_entries."""
        cat, sub = _group(category), _group(subcategory)
        for line in lines:
            text = normalize_text(line)
            if text:
                self._entries.append(HistoryEntry(text=text, category=cat, subcategory=sub))

    def clear(self) -> None:
        self._entries.clear()

    def status(self) -> Dict[str, Any]:
        return {"entries": len(self._entries), "max_entries": self.max_entries, "threshold": self.threshold}
