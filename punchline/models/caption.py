"""Caption-level data shapes shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class TagSet:
    """
    Requested keywords split by how they may surface in output.

    hard: must appear verbatim, original casing kept
    soft: style hints that must never appear verbatim, case-folded
    """
    hard: Tuple[str, ...] = ()
    soft: Tuple[str, ...] = ()

    @classmethod
    def from_lists(cls, hard: List[str], soft: List[str]) -> "TagSet":
        """Build a TagSet from pre-split lists, enforcing dedupe and disjointness."""
        hard_out: List[str] = []
        seen_hard = set()
        for raw in hard:
            tag = raw.strip().strip("\"'").lstrip("@").strip()
            if tag and tag.lower() not in seen_hard:
                seen_hard.add(tag.lower())
                hard_out.append(tag)

        soft_out: List[str] = []
        for raw in soft:
            tag = raw.strip().casefold()
            if tag and tag not in seen_hard and tag not in soft_out:
                soft_out.append(tag)

        return cls(hard=tuple(hard_out), soft=tuple(soft_out))

    def merge(self, other: "TagSet") -> "TagSet":
        return TagSet.from_lists(list(self.hard) + list(other.hard), list(self.soft) + list(other.soft))

    @property
    def is_empty(self) -> bool:
        return not self.hard and not self.soft


@dataclass(frozen=True)
class LengthBucket:
    """Inclusive character range assigned to one line position."""
    lo: int
    hi: int

    def contains(self, text: str) -> bool:
        return self.lo <= len(text) <= self.hi

    @property
    def label(self) -> str:
        return f"[{self.lo},{self.hi}]"


@dataclass
class CandidateLine:
    """
    One caption moving through the pipeline.

    Mutated in place stage by stage. `anchors` holds every phrase the engine
    injected on purpose (lexicon word, tone and rating clauses, entity,
    hard tags, stencil opener) so later length fitting cuts other words first.
    """
    text: str
    bucket_index: int
    bucket: LengthBucket
    voice: Optional[str] = None
    render_mode: str = "plain"
    issues: List[str] = field(default_factory=list)
    anchors: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)

    def add_anchor(self, phrase: str) -> None:
        if phrase and phrase.lower() not in (a.lower() for a in self.anchors):
            self.anchors.append(phrase)
