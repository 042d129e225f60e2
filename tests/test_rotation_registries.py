"""
Tests for the Voice Assignment and Entity Cooldown registries.

Covers:
- Voice validity, distinctness and cross-batch rotation
- Least-recently-used repeats for small pools
- Entity single use per batch and cooldown windows
- Configuration errors
"""

import random

import pytest

from punchline.models.rotation import VoiceProfile
from punchline.services.caption_canon import all_entities
from punchline.services.entity_registry import EntityCooldownRegistry, format_for_display
from punchline.services.voice_catalog import VOICE_CATALOG, voices_for_rating
from punchline.services.voice_registry import VoiceAssignmentRegistry
from punchline.utils.errors import ConfigurationError


def _voice(voice_id: str, ratings=("G",)) -> VoiceProfile:
    return VoiceProfile(
        id=voice_id,
        name=voice_id.title(),
        opener=f"{voice_id.title()} says",
        connector="and then",
        ratings=frozenset(ratings),
    )


class TestVoiceCatalog:
    """Test the static catalog covers every rating."""

    def test_every_rating_has_a_full_batch(self):
        for rating in ("G", "PG-13", "R", "Explicit"):
            assert len(voices_for_rating(rating)) >= 4, rating

    def test_ids_unique(self):
        ids = [v.id for v in VOICE_CATALOG]
        assert len(ids) == len(set(ids))

    def test_templates_have_no_sentence_punctuation(self):
        for voice in VOICE_CATALOG:
            rendered = voice.stencil("setup", "punch")
            assert not any(ch in rendered for ch in ".,;!?"), voice.id


class TestVoiceAssignment:
    """Test voice rotation."""

    def test_assign_distinct_and_valid(self):
        registry = VoiceAssignmentRegistry()
        registry.start_batch()
        voices = registry.assign(4, "PG-13")
        assert len(voices) == 4
        assert len(set(voices)) == 4
        for voice_id in voices:
            assert registry.get_profile(voice_id).supports("PG-13")

    def test_consecutive_batches_rotate(self):
        """Voices from the last batch are skipped while fresh ones remain."""
        registry = VoiceAssignmentRegistry(rng=random.Random(3))
        registry.start_batch()
        first = registry.assign(4, "PG-13")
        registry.start_batch()
        second = registry.assign(4, "PG-13")
        assert not set(first) & set(second)

    def test_small_pool_repeats_least_recent(self):
        registry = VoiceAssignmentRegistry(catalog=[_voice("alpha"), _voice("bravo")])
        registry.start_batch()
        assert registry.assign(4, "G") == ["alpha", "bravo", "alpha", "bravo"]

    def test_rating_without_voices_raises(self):
        registry = VoiceAssignmentRegistry(catalog=[_voice("alpha")])
        registry.start_batch()
        with pytest.raises(ConfigurationError):
            registry.assign(4, "R")

    def test_negative_history_raises(self):
        with pytest.raises(ConfigurationError):
            VoiceAssignmentRegistry(history_size=-1)

    def test_zero_batch(self):
        registry = VoiceAssignmentRegistry()
        registry.start_batch()
        assert registry.assign(0, "G") == []

    def test_unknown_profile_raises(self):
        with pytest.raises(KeyError):
            VoiceAssignmentRegistry().get_profile("mime")

    def test_reset_forgets_history(self):
        registry = VoiceAssignmentRegistry()
        registry.start_batch()
        registry.assign(4, "G")
        registry.reset()
        assert registry.status()["recent_history"] == []
        assert registry.status()["assignments"] == 0


class TestEntityCooldown:
    """Test pop culture entity rotation."""

    def test_single_use_per_batch(self):
        registry = EntityCooldownRegistry(rng=random.Random(11))
        registry.start_new_batch()
        first = registry.select_entity()
        assert first in all_entities()
        assert registry.select_entity() is None

    def test_cooldown_window(self):
        """Used in batch N, unavailable N+1..N+3, eligible again at N+4."""
        registry = EntityCooldownRegistry(pool=["taylor_swift"], cooldown_batches=3)
        registry.start_new_batch()
        assert registry.select_entity() == "taylor_swift"
        for _ in range(3):
            registry.start_new_batch()
            assert registry.select_entity() is None
        registry.start_new_batch()
        assert registry.select_entity() == "taylor_swift"

    def test_no_repeat_across_window(self):
        registry = EntityCooldownRegistry(pool=["a", "b", "c", "d", "e"], cooldown_batches=3, rng=random.Random(5))
        picks = []
        for _ in range(4):
            registry.start_new_batch()
            picks.append(registry.select_entity())
        assert None not in picks
        assert len(set(picks)) == 4

    def test_cooldown_pruned(self):
        registry = EntityCooldownRegistry(pool=["a"], cooldown_batches=1)
        registry.start_new_batch()
        registry.select_entity()
        registry.start_new_batch()
        registry.start_new_batch()
        registry.start_new_batch()
        assert registry.state.cooldown_map == {}

    def test_mark_used_blocks_selection(self):
        registry = EntityCooldownRegistry(pool=["a", "b"])
        registry.start_new_batch()
        registry.mark_used("a")
        assert not registry.is_available("a")
        assert registry.is_available("b")

    def test_quota_above_one(self):
        registry = EntityCooldownRegistry(pool=["a", "b", "c"], max_per_batch=2)
        registry.start_new_batch()
        assert registry.select_entity() is not None
        assert registry.select_entity() is not None
        assert registry.select_entity() is None

    def test_configuration_errors(self):
        with pytest.raises(ConfigurationError):
            EntityCooldownRegistry(pool=[])
        with pytest.raises(ConfigurationError):
            EntityCooldownRegistry(cooldown_batches=-1)
        with pytest.raises(ConfigurationError):
            EntityCooldownRegistry(max_per_batch=0)

    def test_status(self):
        registry = EntityCooldownRegistry(pool=["a", "b"])
        registry.start_new_batch()
        registry.mark_used("a")
        status = registry.status()
        assert status["current_batch_id"] == 1
        assert status["used_in_batch"] == ["a"]
        assert status["available"] == 1


class TestDisplayNames:
    """Test entity display formatting."""

    def test_static_lookup(self):
        assert format_for_display("mrbeast") == "MrBeast"
        assert format_for_display("lil_nas_x") == "Lil Nas X"

    def test_generic_fallback(self):
        assert format_for_display("taylor_swift") == "Taylor Swift"
        assert format_for_display("dolly_parton") == "Dolly Parton"
