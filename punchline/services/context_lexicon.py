"""
Context Lexicon — topical vocabulary for grounding captions.

Maps a topic id to five vocabulary buckets (general, slang, cultural,
emotional, technical). The Content Enforcer uses it two ways:
- VERIFY: a line is grounded when it contains any word from the topic
- INJECT: when it isn't, the first usable general-bucket word is added

Topic resolution runs the request's subcategory (then category) through an
ordered table of word-bounded patterns. Unknown contexts resolve to the
"everyday" topic so verification never has an empty vocabulary.

Also hosts the soft-tag lexicon: style hints that must not appear verbatim
are translated into a related phrase instead ("old" -> "like a fossil").
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from punchline.config.logger import app_logger
from punchline.models.lexicon import LexiconEntry


DEFAULT_TOPIC = "everyday"


# ════════════════════════════════════════════════════════════════════════════
# LEXICON DATABASE
# ════════════════════════════════════════════════════════════════════════════

_ENTRIES: List[LexiconEntry] = [
    # Celebrations
    LexiconEntry(
        topic="birthday",
        general=("cake", "candles", "party", "balloons", "presents", "birthday"),
        slang=("bday", "another lap", "level up", "born day"),
        cultural=("happy birthday song", "surprise party", "party hats", "confetti"),
        emotional=("older", "ancient", "celebrated", "wiser", "festive"),
        technical=("frosting", "candle count", "gift card", "RSVP"),
    ),
    LexiconEntry(
        topic="christmas",
        general=("tree", "presents", "stockings", "lights", "Santa", "Christmas"),
        slang=("xmas", "ugly sweater", "regifting", "elf on the shelf"),
        cultural=("Home Alone", "Mariah Carey", "eggnog", "mistletoe", "North Pole"),
        emotional=("festive", "cozy", "jolly", "broke", "magical"),
        technical=("gift receipt", "tinsel", "advent calendar", "wrapping paper"),
    ),
    LexiconEntry(
        topic="thanksgiving",
        general=("turkey", "stuffing", "gravy", "pie", "family", "Thanksgiving"),
        slang=("food coma", "turkey day", "friendsgiving", "leftovers"),
        cultural=("Black Friday", "parade", "football", "pilgrims"),
        emotional=("grateful", "stuffed", "thankful", "overfed"),
        technical=("brine", "cranberry sauce", "kids table", "carving knife"),
    ),
    # Work
    LexiconEntry(
        topic="work_emails",
        general=("inbox", "email", "reply all", "meeting", "deadline", "boss"),
        slang=("per my last email", "circle back", "synergy", "bandwidth"),
        cultural=("out of office", "Monday", "Slack", "Zoom call"),
        emotional=("passive aggressive", "burned out", "overbooked", "polite"),
        technical=("CC", "BCC", "thread", "calendar invite", "attachment"),
    ),
    LexiconEntry(
        topic="password_reset",
        general=("password", "login", "account", "reset link", "username"),
        slang=("locked out", "forgot again", "password123"),
        cultural=("IT department", "security question", "captcha"),
        emotional=("forgetful", "locked", "defeated", "confused"),
        technical=("two factor", "verification code", "special character", "encryption"),
    ),
    LexiconEntry(
        topic="tech",
        general=("code", "bug", "deploy", "server", "database", "API", "framework", "Git"),
        slang=("ship it", "hack", "ninja", "rockstar", "unicorn", "disrupt", "pivot"),
        cultural=("Silicon Valley", "startup", "IPO", "venture capital", "FAANG"),
        emotional=("burned out", "caffeinated", "imposter syndrome", "innovative"),
        technical=("JavaScript", "Python", "AWS", "Docker", "Kubernetes", "microservices"),
    ),
    LexiconEntry(
        topic="finance",
        general=("money", "profit", "loss", "investment", "portfolio", "market", "stocks"),
        slang=("diamond hands", "paper hands", "to the moon", "hodl", "stonks"),
        cultural=("Wall Street", "NYSE", "Bitcoin", "GameStop", "Reddit"),
        emotional=("volatile", "risky", "anxious", "greedy"),
        technical=("ROI", "derivatives", "hedge fund", "ETF", "401k"),
    ),
    # Sports
    LexiconEntry(
        topic="basketball",
        general=("dribble", "dunk", "rebound", "foul", "court", "hoop", "ball"),
        slang=("balling", "swish", "brick", "ankle breaker", "clutch", "trash talk"),
        cultural=("NBA", "March Madness", "Lakers", "Warriors", "LeBron"),
        emotional=("competitive", "intense", "explosive", "dominant"),
        technical=("three pointer", "free throw", "pick and roll", "zone defense"),
    ),
    LexiconEntry(
        topic="american_football",
        general=("quarterback", "touchdown", "field goal", "tackle", "helmet"),
        slang=("hail mary", "sack", "blitz", "pick six", "red zone"),
        cultural=("Super Bowl", "NFL", "fantasy football", "tailgate"),
        emotional=("aggressive", "strategic", "intense", "tribal"),
        technical=("snap count", "audible", "play action", "shotgun formation"),
    ),
    LexiconEntry(
        topic="soccer_practice",
        general=("soccer", "practice", "cleats", "coach", "goal", "drills", "field"),
        slang=("orange slices", "participation trophy", "snack duty"),
        cultural=("soccer mom", "minivan", "team photo", "World Cup"),
        emotional=("muddy", "exhausted", "proud", "chaotic"),
        technical=("shin guards", "offside", "penalty kick", "scrimmage"),
    ),
    # Places
    LexiconEntry(
        topic="london",
        general=("Tube", "pub", "queue", "mate", "bloke", "quid", "flat"),
        slang=("innit", "bloody", "cheeky", "proper", "knackered", "gutted"),
        cultural=("Big Ben", "Thames", "fish and chips", "double decker", "Mind the Gap"),
        emotional=("rainy", "dreary", "posh", "charming", "foggy"),
        technical=("Underground", "Oyster card", "Westminster", "Piccadilly", "Heathrow"),
    ),
    LexiconEntry(
        topic="new_york",
        general=("subway", "bodega", "cab", "bagel", "apartment", "block", "avenue"),
        slang=("fuhgeddaboudit", "mad", "brick", "schmuck", "facts"),
        cultural=("Yankees", "Times Square", "Broadway", "Manhattan", "Brooklyn"),
        emotional=("hustling", "gritty", "fast paced", "ambitious"),
        technical=("MetroCard", "uptown", "downtown", "boroughs", "JFK"),
    ),
    LexiconEntry(
        topic="los_angeles",
        general=("freeway", "traffic", "beach", "Hollywood", "studios", "palm trees"),
        slang=("hella", "gnarly", "rad", "dude", "lowkey"),
        cultural=("In-N-Out", "Sunset Strip", "Venice Beach", "Beverly Hills", "Malibu"),
        emotional=("chill", "laid back", "sunny", "dreamy"),
        technical=("405", "PCH", "LAX", "the Valley"),
    ),
    # Relationships
    LexiconEntry(
        topic="dating",
        general=("swipe", "match", "date", "chemistry", "spark", "vibe", "flirt"),
        slang=("slide into DMs", "ghosting", "breadcrumbing", "situationship"),
        cultural=("Tinder", "Bumble", "Hinge", "dating apps", "rom-com", "meet-cute"),
        emotional=("butterflies", "awkward", "cringe", "hopeful"),
        technical=("profile", "bio", "red flags", "green flags"),
    ),
    LexiconEntry(
        topic="marriage",
        general=("wedding", "spouse", "ring", "vows", "ceremony", "reception", "honeymoon"),
        slang=("wifey", "hubby", "tied the knot", "put a ring on it"),
        cultural=("something blue", "bachelor party", "maid of honor", "first dance"),
        emotional=("committed", "blissful", "stressed", "grateful"),
        technical=("prenup", "registry", "venue", "catering", "officiant"),
    ),
    # Food, media and everyday life
    LexiconEntry(
        topic="pizza",
        general=("cheese", "sauce", "crust", "slice", "pepperoni", "delivery", "oven", "pizza"),
        slang=("za", "pie", "greasy", "cheesy", "deep dish"),
        cultural=("New York style", "Chicago deep dish", "Italian"),
        emotional=("comfort food", "guilty pleasure", "satisfying", "indulgent"),
        technical=("wood fired", "stone oven", "marinara", "mozzarella"),
    ),
    LexiconEntry(
        topic="netflix",
        general=("streaming", "binge", "series", "season", "episode", "queue"),
        slang=("cliffhanger", "spoilers", "canceled", "one more episode"),
        cultural=("true crime", "Korean drama", "reality TV"),
        emotional=("addictive", "escapist", "lazy", "procrastinating"),
        technical=("autoplay", "recommendations", "original content", "4K"),
    ),
    LexiconEntry(
        topic="instagram",
        general=("post", "story", "follow", "comment", "hashtag", "filter", "feed"),
        slang=("gram", "Insta", "influencer", "flex", "aesthetic", "vibe check"),
        cultural=("selfie", "foodie", "OOTD", "travel blogger"),
        emotional=("curated", "performative", "aspirational"),
        technical=("algorithm", "engagement", "reach", "impressions"),
    ),
    LexiconEntry(
        topic="winter",
        general=("snow", "cold", "ice", "freeze", "jacket", "boots", "fireplace"),
        slang=("bundled up", "seasonal depression", "cabin fever"),
        cultural=("New Year", "skiing", "hot chocolate", "hibernation"),
        emotional=("miserable", "cozy", "magical", "harsh"),
        technical=("below freezing", "wind chill", "blizzard", "frostbite"),
    ),
    LexiconEntry(
        topic="uber",
        general=("ride", "driver", "app", "pickup", "destination", "rating", "surge", "car"),
        slang=("rideshare", "surge pricing", "ghost car", "pool"),
        cultural=("gig economy", "side hustle", "airport run"),
        emotional=("convenient", "expensive", "sketchy", "awkward"),
        technical=("GPS", "ETA", "dynamic pricing", "background check"),
    ),
    LexiconEntry(
        topic="pets",
        general=("dog", "cat", "leash", "treats", "vet", "walk", "pet"),
        slang=("doggo", "floof", "zoomies", "good boy", "fur baby"),
        cultural=("dog park", "grumpy cat", "adoption day"),
        emotional=("loyal", "needy", "adorable", "spoiled"),
        technical=("kibble", "microchip", "litter box", "flea collar"),
    ),
    LexiconEntry(
        topic=DEFAULT_TOPIC,
        general=("life", "today", "people", "vibes", "reality", "chaos"),
        slang=("mood", "lowkey", "big energy", "main character"),
        cultural=("group chat", "weekend", "Monday"),
        emotional=("tired", "unbothered", "dramatic", "hopeful"),
        technical=("schedule", "plan", "routine"),
    ),
]

CONTEXT_LEXICON: Dict[str, LexiconEntry] = {entry.topic: entry for entry in _ENTRIES}


# ════════════════════════════════════════════════════════════════════════════
# TOPIC DETECTION
# Ordered: the first topic whose pattern matches wins.
# ════════════════════════════════════════════════════════════════════════════

SUBCATEGORY_PATTERNS: List[Tuple[str, Tuple[str, ...]]] = [
    ("birthday", (r"birthday", r"bday", r"turning \d+")),
    ("christmas", (r"christmas", r"xmas", r"santa", r"holiday season")),
    ("thanksgiving", (r"thanksgiving", r"turkey day", r"friendsgiving")),
    ("work_emails", (r"work emails?", r"inbox", r"office", r"meetings?")),
    ("password_reset", (r"password", r"login", r"locked out")),
    ("soccer_practice", (r"soccer", r"futbol")),
    ("american_football", (r"american football", r"nfl", r"quarterback", r"touchdown", r"super ?bowl", r"football")),
    ("basketball", (r"basketball", r"nba", r"dunk", r"hoops?")),
    ("london", (r"london", r"british", r"england", r"uk")),
    ("new_york", (r"new ?york", r"nyc", r"manhattan", r"brooklyn")),
    ("los_angeles", (r"los ?angeles", r"hollywood", r"california", r"l\.?a\.?")),
    ("marriage", (r"wedding", r"married", r"marriage", r"spouse", r"husband", r"wife")),
    ("dating", (r"dating", r"tinder", r"bumble", r"hinge", r"first date", r"single")),
    ("tech", (r"tech", r"coding", r"programmer", r"developer", r"startup", r"silicon ?valley")),
    ("finance", (r"finance", r"money", r"stocks?", r"investment", r"wall ?street", r"crypto")),
    ("pizza", (r"pizza", r"pepperoni")),
    ("netflix", (r"netflix", r"streaming", r"binge", r"tv shows?")),
    ("instagram", (r"instagram", r"insta", r"influencer", r"selfie", r"social media")),
    ("winter", (r"winter", r"snow", r"freezing")),
    ("uber", (r"uber", r"lyft", r"rideshare")),
    ("pets", (r"pets?", r"dogs?", r"cats?", r"puppy", r"kitten", r"animals?")),
]

_COMPILED_PATTERNS: List[Tuple[str, List[Pattern[str]]]] = [
    (topic, [re.compile(rf"\b{p}\b", re.IGNORECASE) for p in patterns])
    for topic, patterns in SUBCATEGORY_PATTERNS
]


def detect_topic(text: str) -> Optional[str]:
    """Return the first topic whose pattern matches text, or None."""
    if not text:
        return None
    for topic, patterns in _COMPILED_PATTERNS:
        if any(p.search(text) for p in patterns):
            return topic
    return None


def resolve_topic(category: str, subcategory: str = "") -> str:
    """
    Resolve the lexicon topic for a request.

    Subcategory is more specific, so it is tried first. Direct topic ids
    ("new_york", "Work emails") are accepted as-is.
    """
    for candidate in (subcategory, category):
        if not candidate:
            continue
        direct = re.sub(r"[\s-]+", "_", candidate.strip().lower())
        if direct in CONTEXT_LEXICON:
            return direct
        detected = detect_topic(candidate)
        if detected:
            return detected
    return DEFAULT_TOPIC


def get_lexicon(topic: str) -> LexiconEntry:
    """Lexicon entry for topic, falling back to the everyday entry."""
    return CONTEXT_LEXICON.get(topic) or CONTEXT_LEXICON[DEFAULT_TOPIC]


def lexicon_words(topic: str) -> Tuple[str, ...]:
    return get_lexicon(topic).all_words()


def _phrase_regex(phrase: str) -> Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in phrase.split())
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def find_lexicon_words(text: str, topic: str) -> List[str]:
    """All lexicon words for topic found in text (case-insensitive, word-bounded)."""
    return [w for w in lexicon_words(topic) if _phrase_regex(w).search(text)]


def has_lexicon_word(text: str, topic: str) -> bool:
    return any(_phrase_regex(w).search(text) for w in lexicon_words(topic))


def injection_word(topic: str, avoid: Iterable[str] = ()) -> str:
    """
    First general-bucket word usable for injection.

    Words containing an avoided term (soft tags) are skipped so grounding
    never leaks a style hint.
    """
    avoid_lower = [a.lower() for a in avoid if a]
    entry = get_lexicon(topic)
    for word in entry.general + entry.cultural:
        lowered = word.lower()
        if not any(_phrase_regex(a).search(lowered) for a in avoid_lower):
            return word
    app_logger.warning(f"No injectable lexicon word for topic '{topic}' avoiding {avoid_lower}")
    return entry.general[0]


def select_contextual_words(topic: str, tone: str, count: int = 5) -> List[str]:
    """Tone-weighted vocabulary sample for a topic, deduplicated."""
    entry = get_lexicon(topic)
    tone_lower = (tone or "").lower()

    if tone_lower in ("savage", "humorous"):
        words = list(entry.slang[:2]) + list(entry.emotional[:2]) + list(entry.general[:1])
    elif tone_lower in ("sentimental", "romantic"):
        words = list(entry.emotional[:3]) + list(entry.cultural[:2])
    elif tone_lower == "serious":
        words = list(entry.technical[:2]) + list(entry.general[:3])
    else:
        words = list(entry.general[:2]) + list(entry.cultural[:2]) + list(entry.slang[:1])

    unique: List[str] = []
    for word in words:
        if word not in unique:
            unique.append(word)
    return unique[:count]


# ════════════════════════════════════════════════════════════════════════════
# CONTEXTUAL FALLBACKS
# Used when the generator returned fewer lines than the batch needs.
# ════════════════════════════════════════════════════════════════════════════

_FALLBACK_TEMPLATES: Dict[str, List[str]] = {
    "savage": [
        "{w1} hit different once you realize {w2} is basically expensive {w3}",
        "Plot twist {w1} called and said {w2} is not worth the {w3}",
        "{w1} energy meets {w2} reality and suddenly {w3} makes sense",
        "When {w1} goes wrong even {w2} starts looking like {w3}",
    ],
    "sentimental": [
        "There is something beautiful about {w1} that reminds me of {w2}",
        "{w1} taught me that {w2} is really about {w3} and the people",
        "Sometimes {w1} feels like {w2} wrapped in {w3} and served warm",
        "The best {w1} moments happen when {w2} meets {w3}",
    ],
    "default": [
        "{w1} vibes with a side of {w2} and a sprinkle of {w3}",
        "Plot twist {w1} is actually {w2} in disguise as {w3}",
        "{w1} energy meets {w2} chaos and somehow {w3} wins",
        "When {w1} calls {w2} picks up but {w3} does all the talking",
    ],
}


def contextual_fallbacks(topic: str, tone: str, count: int = 4) -> List[str]:
    """Fallback caption drafts built from the topic vocabulary."""
    words = select_contextual_words(topic, tone, count=3)
    entry = get_lexicon(topic)
    pool = list(words) + [w for w in entry.general if w not in words]
    while len(pool) < 3:
        pool.append(CONTEXT_LEXICON[DEFAULT_TOPIC].general[len(pool)])
    w1, w2, w3 = pool[0], pool[1], pool[2]

    key = (tone or "").lower()
    if key == "romantic":
        key = "sentimental"
    templates = _FALLBACK_TEMPLATES.get(key, _FALLBACK_TEMPLATES["default"])
    drafts = [t.format(w1=w1, w2=w2, w3=w3) for t in templates]
    return drafts[:count]


# ════════════════════════════════════════════════════════════════════════════
# SOFT TAG LEXICON
# Style hints rendered as related phrasing instead of the literal tag.
# ════════════════════════════════════════════════════════════════════════════

SOFT_TAG_LEXICON: Dict[str, List[str]] = {
    "so old": ["like a fossil", "vintage edition"],
    "old": ["like a fossil", "vintage edition"],
    "drunk": ["slightly tipsy", "one round too many"],
    "lazy": ["couch potato mode", "energy saving mode"],
    "broke": ["on a budget", "wallet on fumes"],
    "nerd": ["certified geek", "big brain energy"],
    "tired": ["running on fumes", "nap required"],
    "awkward": ["peak cringe", "maximum cringe"],
    "funny": ["comedy gold", "pure comedy"],
}


def soft_tag_hints(soft_tags: Sequence[str]) -> List[str]:
    """Related phrases for known soft tags, never containing any soft tag."""
    hints: List[str] = []
    lowered = [s.lower() for s in soft_tags]
    for tag in lowered:
        for phrase in SOFT_TAG_LEXICON.get(tag, []):
            if phrase in hints:
                continue
            if any(_phrase_regex(s).search(phrase) for s in lowered):
                continue
            hints.append(phrase)
            break
    return hints


app_logger.info(
    f"Context lexicon loaded: {len(CONTEXT_LEXICON)} topics, "
    f"{len(SUBCATEGORY_PATTERNS)} detection rules, "
    f"{len(SOFT_TAG_LEXICON)} soft tag mappings"
)
