"""
Voice catalog — named delivery styles and their one-sentence stencils.

Each voice wraps a caption's setup and punch halves in a fixed phrase
pattern. Openers and connectors are kept short so the stencil still fits
the smallest length bucket once the normalizer trims the halves.

Every rating tier must be covered by at least as many voices as a batch has
lines, otherwise the registry has to repeat voices inside a batch.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from punchline.config.logger import app_logger
from punchline.models.rotation import VoiceProfile
from punchline.services.caption_canon import RATINGS


_ALL = frozenset(RATINGS)
_CLEAN = frozenset({"G", "PG-13"})
_EDGY = frozenset({"PG-13", "R", "Explicit"})


VOICE_CATALOG: List[VoiceProfile] = [
    VoiceProfile(
        id="deadpan",
        name="Deadpan Drifter",
        opener="Honestly",
        connector="and then",
        ratings=_ALL,
    ),
    VoiceProfile(
        id="storyteller",
        name="Porch Storyteller",
        opener="So get this",
        connector="and somehow",
        ratings=_ALL,
    ),
    VoiceProfile(
        id="hype_man",
        name="Hype Man",
        opener="Man listen",
        connector="and next thing I know",
        ratings=_EDGY,
    ),
    VoiceProfile(
        id="observer",
        name="Observational Nerd",
        opener="You ever notice",
        connector="because",
        ratings=_CLEAN,
        template="{opener} how {setup} {connector} {punch}",
    ),
    VoiceProfile(
        id="grandma",
        name="Sassy Grandma",
        opener="Back in my day",
        connector="but now",
        ratings=_CLEAN,
    ),
    VoiceProfile(
        id="roaster",
        name="Roast Master",
        opener="Real talk",
        connector="so basically",
        ratings=_EDGY,
    ),
    VoiceProfile(
        id="fact_checker",
        name="Fact Checker",
        opener="Fun fact",
        connector="which means",
        ratings=frozenset({"G", "PG-13", "R"}),
    ),
    VoiceProfile(
        id="cynic",
        name="Tired Cynic",
        opener="Look",
        connector="and of course",
        ratings=_ALL,
    ),
    VoiceProfile(
        id="confessor",
        name="Late Night Confessor",
        opener="Not gonna lie",
        connector="but then",
        ratings=_EDGY,
    ),
    VoiceProfile(
        id="chaos_agent",
        name="Chaos Agent",
        opener="Plot twist",
        connector="and suddenly",
        ratings=frozenset({"R", "Explicit"}),
    ),
    VoiceProfile(
        id="sweetheart",
        name="Sunday Sweetheart",
        opener="Bless it",
        connector="and still",
        ratings=frozenset({"G"}),
    ),
    VoiceProfile(
        id="dad",
        name="Dad Joke Department",
        opener="Gather round",
        connector="so naturally",
        ratings=_CLEAN,
    ),
]

VOICES_BY_ID: Dict[str, VoiceProfile] = {v.id: v for v in VOICE_CATALOG}


def get_voice(voice_id: Optional[str]) -> Optional[VoiceProfile]:
    if not voice_id:
        return None
    return VOICES_BY_ID.get(voice_id)


def voices_for_rating(rating: str, catalog: Optional[List[VoiceProfile]] = None) -> List[VoiceProfile]:
    """Voices valid for rating, in catalog order."""
    return [v for v in (catalog or VOICE_CATALOG) if v.supports(rating)]


def known_openers(catalog: Optional[List[VoiceProfile]] = None) -> List[str]:
    return [v.opener for v in (catalog or VOICE_CATALOG)]


app_logger.info(
    f"Voice catalog loaded: {len(VOICE_CATALOG)} voices, "
    + ", ".join(f"{r}={len(voices_for_rating(r))}" for r in RATINGS)
)
