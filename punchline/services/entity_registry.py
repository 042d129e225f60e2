"""
Entity Cooldown Registry — pop culture freshness across batches.

At most one cultural reference per batch (quota configurable), drawn from a
curated pool, never repeated inside the cooldown window:

    batch N        entity used          -> in used_in_batch and cooldown_map
    batch N+1..N+W entity on cooldown   -> not selectable
    batch N+W+1    entity eligible again (its cooldown entry is pruned)

Batch ids only move on start_new_batch(), so the caller must open a batch
before selecting. Each session owns its own registry.
"""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional, Sequence

from punchline.config.logger import app_logger
from punchline.config.settings import settings
from punchline.models.rotation import EntityCooldownState
from punchline.services.caption_canon import ENTITY_DISPLAY_NAMES, all_entities
from punchline.utils.errors import ConfigurationError


def format_for_display(entity_id: str) -> str:
    """
    Human-readable label for an entity id.

    Static lookup first, then a generic transform: underscores become
    spaces and each word is capitalized.
    """
    if entity_id in ENTITY_DISPLAY_NAMES:
        return ENTITY_DISPLAY_NAMES[entity_id]
    words = entity_id.replace("_", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


class EntityCooldownRegistry:
    """
    Per-session entity rotation.

    Usage:
        registry = EntityCooldownRegistry()
        registry.start_new_batch()
        entity = registry.select_entity()   # "taylor_swift" or None
    """

    def __init__(
        self,
        pool: Optional[Sequence[str]] = None,
        cooldown_batches: int = settings.ENTITY_COOLDOWN_BATCHES,
        max_per_batch: int = settings.ENTITY_MAX_PER_BATCH,
        rng: Optional[random.Random] = None,
    ):
        self._pool: List[str] = list(all_entities() if pool is None else pool)
        if not self._pool:
            raise ConfigurationError("Entity pool is empty", setting="entity_pool")
        if cooldown_batches < 0:
            raise ConfigurationError(
                f"Entity cooldown must be >= 0 batches, got {cooldown_batches}",
                setting="ENTITY_COOLDOWN_BATCHES",
            )
        if max_per_batch < 1:
            raise ConfigurationError(
                f"Entity quota must be >= 1 per batch, got {max_per_batch}",
                setting="ENTITY_MAX_PER_BATCH",
            )
        self.cooldown_batches = cooldown_batches
        self.max_per_batch = max_per_batch
        self._rng = rng or random.Random(settings.RANDOM_SEED)
        self.state = EntityCooldownState()

    # ════════════════════════════════════════════════════════════════════════
    # BATCH LIFECYCLE
    # ════════════════════════════════════════════════════════════════════════

    def start_new_batch(self) -> int:
        """Advance the batch id, clear the per-batch set and prune expired cooldowns."""
        self.state.current_batch_id += 1
        self.state.used_in_batch.clear()

        oldest_active = self.state.current_batch_id - self.cooldown_batches
        expired = [e for e, used_in in self.state.cooldown_map.items() if used_in < oldest_active]
        for entity in expired:
            del self.state.cooldown_map[entity]

        if expired:
            app_logger.debug(f"Entity cooldown expired for {expired}")
        return self.state.current_batch_id

    # ════════════════════════════════════════════════════════════════════════
    # SELECTION
    # ════════════════════════════════════════════════════════════════════════

    def is_available(self, entity_id: str) -> bool:
        if entity_id in self.state.used_in_batch:
            return False
        used_in = self.state.cooldown_map.get(entity_id)
        if used_in is None:
            return True
        return self.state.current_batch_id - used_in > self.cooldown_batches

    def available(self) -> List[str]:
        return [e for e in self._pool if self.is_available(e)]

    def mark_used(self, entity_id: str) -> None:
        self.state.used_in_batch.add(entity_id)
        self.state.cooldown_map[entity_id] = self.state.current_batch_id

    def select_entity(self) -> Optional[str]:
        """
        Pick a fresh entity for the current batch.

        Returns None when the batch quota is spent or every entity is on
        cooldown.
        """
        if len(self.state.used_in_batch) >= self.max_per_batch:
            return None

        candidates = self.available()
        if not candidates:
            app_logger.info(f"All {len(self._pool)} entities on cooldown in batch {self.state.current_batch_id}")
            return None

        entity = self._rng.choice(candidates)
        self.mark_used(entity)
        app_logger.debug(f"Selected entity '{entity}' for batch {self.state.current_batch_id}")
        return entity

    def format_for_display(self, entity_id: str) -> str:
        return format_for_display(entity_id)

    # ════════════════════════════════════════════════════════════════════════
    # INTROSPECTION
    # ════════════════════════════════════════════════════════════════════════

    def status(self) -> Dict[str, Any]:
        return {
            "current_batch_id": self.state.current_batch_id,
            "used_in_batch": sorted(self.state.used_in_batch),
            "on_cooldown": sorted(e for e in self.state.cooldown_map if not self.is_available(e)),
            "available": len(self.available()),
            "pool_size": len(self._pool),
        }
