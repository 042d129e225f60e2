"""
Voice Assignment Registry — per-session comedian voice rotation.

assign(batch_size, rating) returns one voice id per line:
- every id is valid for the rating
- ids are pairwise distinct whenever the eligible pool allows it
- ids in recent_history (the last N assignments) are skipped while fresh
  ids remain, so consecutive batches sound different
- when the pool is smaller than the batch, the least recently used ids
  repeat instead of failing

The registry is pure rotation logic. It never sees caption text; rendering
through a voice's stencil lives in stencil_renderer.

Each session owns its own registry (see session_store). start_batch() marks
the batch boundary and must be called once before assign().
"""

from __future__ import annotations

import random
from collections import deque
from typing import Any, Dict, List, Optional, Sequence

from punchline.config.logger import app_logger
from punchline.config.settings import settings
from punchline.models.rotation import VoiceProfile, VoiceRotationState
from punchline.services.caption_canon import normalize_rating
from punchline.services.voice_catalog import VOICE_CATALOG
from punchline.utils.errors import ConfigurationError


class VoiceAssignmentRegistry:
    """
    Rotation state for comedian voices.

    Usage:
        registry = VoiceAssignmentRegistry()
        registry.start_batch()
        voices = registry.assign(4, "PG-13")
    """

    def __init__(
        self,
        catalog: Optional[Sequence[VoiceProfile]] = None,
        history_size: int = settings.VOICE_HISTORY_SIZE,
        rng: Optional[random.Random] = None,
    ):
        if history_size < 0:
            raise ConfigurationError(f"Voice history size must be >= 0, got {history_size}", setting="VOICE_HISTORY_SIZE")
        self._catalog: List[VoiceProfile] = list(VOICE_CATALOG if catalog is None else catalog)
        self._history_size = history_size
        self._rng = rng
        self.state = VoiceRotationState(recent_history=deque(maxlen=history_size))

    # ════════════════════════════════════════════════════════════════════════
    # BATCH LIFECYCLE
    # ════════════════════════════════════════════════════════════════════════

    def start_batch(self) -> None:
        """Open a new batch: voices used in the previous batch become reusable."""
        self.state.used_this_batch.clear()

    def reset(self) -> None:
        """Forget everything, including cross-batch history."""
        self.state = VoiceRotationState(recent_history=deque(maxlen=self._history_size))

    # ════════════════════════════════════════════════════════════════════════
    # SELECTION
    # ════════════════════════════════════════════════════════════════════════

    def eligible(self, rating: str) -> List[str]:
        """
        Voice ids valid for rating, in catalog order.

        Raises:
            ConfigurationError: the catalog has no voice for this rating
        """
        tier = normalize_rating(rating)
        pool = [v.id for v in self._catalog if v.supports(tier)]
        if not pool:
            raise ConfigurationError(f"No voices configured for rating '{tier}'", setting="voice_catalog")
        return pool

    def assign(self, batch_size: int, rating: str) -> List[str]:
        """Return batch_size voice ids for rating and record them."""
        pool = self.eligible(rating)
        if batch_size <= 0:
            return []

        assigned: List[str] = []
        for _ in range(batch_size):
            choice = self._pick(pool)
            self._record(choice)
            assigned.append(choice)

        if len(set(assigned)) < len(assigned):
            app_logger.warning(
                f"Voice pool for {normalize_rating(rating)} has {len(pool)} voices, "
                f"batch of {batch_size} repeats: {assigned}"
            )
        app_logger.debug(f"Assigned voices {assigned} (history={list(self.state.recent_history)})")
        return assigned

    def _pick(self, pool: List[str]) -> str:
        unused = [v for v in pool if v not in self.state.used_this_batch]
        fresh = [v for v in unused if v not in self.state.recent_history]
        candidates = fresh or unused or list(pool)
        return self._least_recent(candidates)

    def _least_recent(self, candidates: List[str]) -> str:
        ordered = list(candidates)
        if self._rng is not None:
            self._rng.shuffle(ordered)
        # min() keeps the first of equal keys, so ties follow catalog (or shuffled) order
        return min(ordered, key=lambda v: self.state.last_used.get(v, -1))

    def _record(self, voice_id: str) -> None:
        self.state.tick += 1
        self.state.last_used[voice_id] = self.state.tick
        self.state.used_this_batch.add(voice_id)
        self.state.recent_history.append(voice_id)

    # ════════════════════════════════════════════════════════════════════════
    # INTROSPECTION
    # ════════════════════════════════════════════════════════════════════════

    def get_profile(self, voice_id: str) -> VoiceProfile:
        for voice in self._catalog:
            if voice.id == voice_id:
                return voice
        raise KeyError(f"Unknown voice id: {voice_id}")

    def status(self) -> Dict[str, Any]:
        return {
            "catalog_size": len(self._catalog),
            "used_this_batch": sorted(self.state.used_this_batch),
            "recent_history": list(self.state.recent_history),
            "assignments": self.state.tick,
        }
