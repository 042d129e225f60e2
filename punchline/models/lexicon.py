from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LexiconEntry:
    """Vocabulary buckets for one topic. Static, never mutated."""
    topic: str
    general: Tuple[str, ...]
    slang: Tuple[str, ...] = ()
    cultural: Tuple[str, ...] = ()
    emotional: Tuple[str, ...] = ()
    technical: Tuple[str, ...] = ()

    def all_words(self) -> Tuple[str, ...]:
        return self.general + self.slang + self.cultural + self.emotional + self.technical
