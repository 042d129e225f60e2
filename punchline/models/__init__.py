"""Models module - imports all engine data shapes."""

from punchline.models.caption import TagSet, LengthBucket, CandidateLine
from punchline.models.lexicon import LexiconEntry
from punchline.models.rotation import VoiceProfile, VoiceRotationState, EntityCooldownState

__all__ = [
    "TagSet",
    "LengthBucket",
    "CandidateLine",
    "LexiconEntry",
    "VoiceProfile",
    "VoiceRotationState",
    "EntityCooldownState",
]
