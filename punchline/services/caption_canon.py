"""
CAPTION CANON
Static reference tables for the caption validation and repair engine

This module consolidates every data table the engine reads:
- Length Bucket Table (Section I)
- Rating Tiers & Profanity Lists (Section II)
- Tone Vocabulary & Clauses (Section III)
- Stale / Robotic Phrasing (Section IV)
- Pop Culture Entity Pool (Section V)
- Category Gates (Section VI)
- Filler & Variation Clauses (Section VII)

The tables are data, not runtime flags: changing them never changes the
algorithm that consumes them.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from punchline.config.logger import app_logger
from punchline.models.caption import LengthBucket
from punchline.utils.errors import ConfigurationError


# ════════════════════════════════════════════════════════════════════════════
# SECTION I — LENGTH BUCKET TABLE
# Bucket i belongs to line i. Forces size variety across the batch.
# ════════════════════════════════════════════════════════════════════════════

DEFAULT_BUCKETS: List[Tuple[int, int]] = [
    (40, 60),
    (61, 80),
    (81, 100),
    (61, 80),
]


def build_bucket_table(ranges: Optional[Sequence[Tuple[int, int]]] = None) -> List[LengthBucket]:
    """
    Validate a list of (lo, hi) ranges and return LengthBucket objects.

    Raises:
        ConfigurationError: table is empty or a range is inverted/non-positive
    """
    ranges = DEFAULT_BUCKETS if ranges is None else ranges
    if not ranges:
        raise ConfigurationError("Length bucket table is empty", setting="buckets")

    table: List[LengthBucket] = []
    for lo, hi in ranges:
        if lo <= 0 or hi < lo:
            raise ConfigurationError(f"Invalid length bucket [{lo},{hi}]", setting="buckets")
        table.append(LengthBucket(lo=lo, hi=hi))
    return table


# ════════════════════════════════════════════════════════════════════════════
# SECTION II — RATING TIERS & PROFANITY LISTS
# Ordered from clean to explicit. Lower tiers ban, higher tiers require edge.
# ════════════════════════════════════════════════════════════════════════════

RATINGS: List[str] = ["G", "PG-13", "R", "Explicit"]

STRONG_PROFANITY: List[str] = [
    "motherfucker", "motherfucking", "fucking", "fucked", "fucker", "fuck",
    "bullshit", "shitshow", "shitty", "shit",
    "bitches", "bitch", "assholes", "asshole", "dickhead", "dick",
]

MILD_PROFANITY: List[str] = [
    "goddamn", "damned", "damn", "hell", "crappy", "crap",
    "badass", "dumbass", "jackass", "ass", "pissed", "piss", "bastard",
]

SEXUAL_TERMS: List[str] = [
    "sexy", "sex", "horny", "kinky", "naked", "nude", "orgasm",
    "boobs", "naughty", "steamy", "frisky",
]

# Evidence of edge that is not profanity
ATTITUDE_MARKERS: List[str] = [
    "savage", "roast", "roasted", "burn", "burned", "destroy", "destroyed",
    "wreck", "wrecked", "brutal", "petty", "shade",
]

SUGGESTIVE_MARKERS: List[str] = [
    "spicy", "thirsty", "cheeky", "flirty", "in bed",
]

CLEAN_SUBSTITUTES: Dict[str, str] = {
    "motherfucker": "mother trucker",
    "motherfucking": "mother trucking",
    "fucking": "freaking",
    "fucked": "fried",
    "fucker": "sucker",
    "fuck": "fudge",
    "bullshit": "nonsense",
    "shitshow": "circus",
    "shitty": "lousy",
    "shit": "stuff",
    "bitches": "divas",
    "bitch": "diva",
    "assholes": "jerks",
    "asshole": "jerk",
    "dickhead": "goofball",
    "dick": "jerk",
    "goddamn": "gosh darn",
    "damned": "darned",
    "damn": "darn",
    "hell": "heck",
    "crappy": "cruddy",
    "crap": "junk",
    "badass": "bold",
    "dumbass": "goofball",
    "jackass": "clown",
    "ass": "butt",
    "pissed": "peeved",
    "piss": "annoy",
    "bastard": "rascal",
    "sexy": "charming",
    "sex": "romance",
    "horny": "eager",
    "kinky": "quirky",
    "naked": "unbothered",
    "nude": "bare",
    "orgasm": "thrill",
    "boobs": "chest",
    "naughty": "mischievous",
    "steamy": "warm",
    "frisky": "lively",
}

# Clause appended when a tier requires edge the line does not show
RATING_CLAUSES: Dict[str, List[str]] = {
    "PG-13": ["damn right", "what the hell", "pure shade"],
    "R": ["no shit", "holy shit", "brutal honestly"],
    "Explicit": ["no fucks given", "fuck yes", "and it got kinky"],
}

_INFLECTIONS = r"(?:s|es|ed|er|ers|ing|in|y)?"


def word_pattern(words: Sequence[str], inflect: bool = True) -> Pattern[str]:
    """Word-bounded, case-insensitive alternation, longest entries first."""
    ordered = sorted({w.lower() for w in words}, key=len, reverse=True)
    body = "|".join(r"\s+".join(re.escape(part) for part in w.split()) for w in ordered)
    suffix = _INFLECTIONS if inflect else ""
    return re.compile(rf"\b({body}){suffix}\b", re.IGNORECASE)


PROFANITY_TIERS: Dict[str, List[str]] = {
    "strong": STRONG_PROFANITY,
    "mild": MILD_PROFANITY,
    "sexual": SEXUAL_TERMS,
    "attitude": ATTITUDE_MARKERS,
    "suggestive": SUGGESTIVE_MARKERS,
}

TIER_PATTERNS: Dict[str, Pattern[str]] = {
    name: word_pattern(words) for name, words in PROFANITY_TIERS.items()
}


def get_tier_pattern(tier: str) -> Pattern[str]:
    try:
        return TIER_PATTERNS[tier]
    except KeyError:
        raise KeyError(f"Unknown profanity tier: {tier}") from None


def normalize_rating(rating: str) -> str:
    """Map loose rating spellings onto the canonical tier names."""
    key = (rating or "").strip().upper().replace("_", "-").replace(" ", "-")
    aliases = {
        "G": "G",
        "PG": "PG-13",
        "PG-13": "PG-13",
        "PG13": "PG-13",
        "R": "R",
        "EXPLICIT": "Explicit",
        "NSFW": "Explicit",
    }
    return aliases.get(key, "PG-13")


# ════════════════════════════════════════════════════════════════════════════
# SECTION III — TONE VOCABULARY & CLAUSES
# ════════════════════════════════════════════════════════════════════════════

TONE_WORDS: Dict[str, List[str]] = {
    "romantic": ["love", "heart", "romance", "sweet", "forever", "adore", "darling", "crush", "kiss"],
    "savage": ["savage", "roast", "brutal", "ruthless", "burn", "destroyed", "wrecked"],
    "playful": ["silly", "goofy", "playful", "fun", "cheeky", "giggle"],
    "sentimental": ["memories", "nostalgia", "tender", "cherish", "remember", "sentimental"],
    "humorous": ["hilarious", "funny", "joke", "laugh", "comedy"],
}

TONE_CLAUSES: Dict[str, List[str]] = {
    "romantic": ["with love", "straight from the heart", "sweet as ever"],
    "savage": ["savage style", "brutal honestly", "no mercy roast"],
    "playful": ["in a silly way", "just for fun", "goofy as ever"],
    "sentimental": ["full of memories", "we will remember", "pure nostalgia"],
    "humorous": ["which is hilarious", "funny enough", "what a joke"],
}


def tone_key(tone: str) -> str:
    return (tone or "").strip().lower()


# ════════════════════════════════════════════════════════════════════════════
# SECTION IV — STALE / ROBOTIC PHRASING
# ════════════════════════════════════════════════════════════════════════════

STALE_PHRASES: List[str] = [
    "when life gives you lemons",
    "at the end of the day",
    "it is what it is",
    "living my best life",
    "here's a joke",
    "here is a joke",
    "as an ai",
    "caption:",
    "joke:",
    "punchline:",
]

ROBOTIC_OPENERS: List[str] = [
    "that moment when",
    "when you",
    "me when",
    "nobody:",
    "pov",
    "here is",
    "here's",
    "as an ai",
    "introducing",
]


# ════════════════════════════════════════════════════════════════════════════
# SECTION V — POP CULTURE ENTITY POOL
# ════════════════════════════════════════════════════════════════════════════

POP_CULTURE_ENTITIES: Dict[str, List[str]] = {
    "music": ["taylor_swift", "beyonce", "bad_bunny", "olivia_rodrigo", "harry_styles", "dolly_parton"],
    "film_tv": ["the_bear", "succession", "barbie", "oppenheimer", "stranger_things", "ted_lasso"],
    "internet": ["mrbeast", "grimace_shake", "roman_empire", "girl_dinner", "duolingo_owl"],
    "sports": ["lebron_james", "messi", "travis_kelce", "simone_biles", "serena_williams"],
    "queer_trans": ["rupaul", "elliot_page", "lil_nas_x", "laverne_cox"],
}

ENTITY_DISPLAY_NAMES: Dict[str, str] = {
    "beyonce": "Beyonce",
    "the_bear": "The Bear",
    "mrbeast": "MrBeast",
    "grimace_shake": "the Grimace Shake",
    "roman_empire": "the Roman Empire",
    "girl_dinner": "girl dinner",
    "duolingo_owl": "the Duolingo owl",
    "lebron_james": "LeBron James",
    "rupaul": "RuPaul",
    "lil_nas_x": "Lil Nas X",
}


def all_entities() -> List[str]:
    """Flattened entity pool in category order."""
    flat: List[str] = []
    for bucket in POP_CULTURE_ENTITIES.values():
        flat.extend(e for e in bucket if e not in flat)
    return flat


# ════════════════════════════════════════════════════════════════════════════
# SECTION VI — CATEGORY GATES
# Input precedence applied before any line is touched.
# ════════════════════════════════════════════════════════════════════════════

EXPLICIT_BLOCKED_CATEGORIES: List[str] = [
    "pets", "animals", "dog park", "kids", "school", "daycare",
]


def is_explicit_blocked(category: str, subcategory: str = "") -> bool:
    haystack = f"{category} {subcategory}".lower()
    return any(blocked in haystack for blocked in EXPLICIT_BLOCKED_CATEGORIES)


# ════════════════════════════════════════════════════════════════════════════
# SECTION VII — FILLER & VARIATION CLAUSES
# Every entry ends on a word the normalizer accepts as a clean ending.
# ════════════════════════════════════════════════════════════════════════════

FILLER_CLAUSES: List[str] = [
    "and honestly that tracks",
    "every single time",
    "without fail",
    "for real",
    "no cap",
    "tonight",
    "again",
]

VARIATION_CLAUSES: List[str] = [
    "plot twist included",
    "twice as loud",
    "round two",
    "even worse",
]


app_logger.info(
    f"Caption canon loaded: "
    f"{len(DEFAULT_BUCKETS)} buckets, "
    f"{len(RATINGS)} ratings, "
    f"{sum(len(v) for v in PROFANITY_TIERS.values())} rating terms, "
    f"{len(TONE_WORDS)} tones, "
    f"{len(all_entities())} entities"
)
