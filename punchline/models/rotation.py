"""Voice and entity rotation shapes."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, FrozenSet, Set


@dataclass(frozen=True)
class VoiceProfile:
    """
    A named delivery style and the one-sentence stencil it renders through.

    The template is a str.format pattern over {opener}, {setup}, {connector}
    and {punch}. Templates never contain sentence punctuation; the
    normalizer adds the single terminal period after rendering.
    """
    id: str
    name: str
    opener: str
    connector: str
    ratings: FrozenSet[str]
    template: str = "{opener} {setup} {connector} {punch}"

    def stencil(self, setup: str, punch: str) -> str:
        return self.template.format(
            opener=self.opener,
            setup=setup,
            connector=self.connector,
            punch=punch,
        )

    def opener_only(self, text: str) -> str:
        return f"{self.opener} {text}"

    def supports(self, rating: str) -> bool:
        return rating in self.ratings


@dataclass
class VoiceRotationState:
    """Per-session voice memory."""
    used_this_batch: Set[str] = field(default_factory=set)
    recent_history: Deque[str] = field(default_factory=lambda: deque(maxlen=4))
    last_used: Dict[str, int] = field(default_factory=dict)
    tick: int = 0


@dataclass
class EntityCooldownState:
    """Per-session pop culture memory, measured in batch ids."""
    current_batch_id: int = 0
    used_in_batch: Set[str] = field(default_factory=set)
    cooldown_map: Dict[str, int] = field(default_factory=dict)
