"""English singular/plural forms for entity names.

Rule-based with irregular and uncountable tables; words are returned in
lowercase. Only the forms entity names actually take are covered.
"""

from __future__ import annotations

MAX_WORD_LENGTH = 100

UNCOUNTABLE_NOUNS = frozenset(
    {
        # abstract
        "advice", "information", "knowledge", "wisdom", "intelligence", "evidence",
        "research", "progress", "happiness", "sadness", "luck", "fun",
        # materials
        "water", "air", "oil", "milk", "rice", "bread", "sugar", "salt", "flour",
        "gold", "silver", "iron", "wood", "paper", "glass", "plastic", "cotton", "wool",
        # software
        "software", "hardware", "firmware", "malware", "freeware", "shareware",
        "middleware", "feedback", "bandwidth", "traffic", "spam", "code",
        # general
        "equipment", "furniture", "luggage", "baggage", "clothing", "weather", "news",
        "homework", "housework", "money", "cash", "music", "art", "poetry",
        "literature", "electricity", "heat", "light", "darkness", "space", "time",
        "work", "travel", "accommodation", "scenery", "machinery", "jewelry",
        "rubbish", "garbage", "trash", "stuff",
        # same singular and plural
        "sheep", "fish", "deer", "moose", "swine", "buffalo", "shrimp", "trout",
        "salmon", "squid", "aircraft", "spacecraft", "hovercraft", "series",
        "species", "means", "offspring", "chassis", "corps", "swiss",
    }
)

IRREGULAR_PLURALS: dict[str, str] = {
    "person": "people", "child": "children", "man": "men", "woman": "women",
    "tooth": "teeth", "foot": "feet", "mouse": "mice", "goose": "geese", "ox": "oxen",
    "leaf": "leaves", "life": "lives", "knife": "knives", "wife": "wives",
    "half": "halves", "shelf": "shelves", "self": "selves", "calf": "calves",
    "loaf": "loaves",
    "potato": "potatoes", "tomato": "tomatoes", "hero": "heroes", "echo": "echoes",
    "embargo": "embargoes", "veto": "vetoes", "cargo": "cargoes",
    "analysis": "analyses", "basis": "bases", "crisis": "crises",
    "diagnosis": "diagnoses", "hypothesis": "hypotheses", "oasis": "oases",
    "parenthesis": "parentheses", "synopsis": "synopses", "thesis": "theses",
    "criterion": "criteria", "phenomenon": "phenomena", "datum": "data",
    "medium": "media", "curriculum": "curricula", "memorandum": "memoranda",
    "stimulus": "stimuli", "syllabus": "syllabi", "focus": "foci", "fungus": "fungi",
    "cactus": "cacti",
    "appendix": "appendices", "index": "indices", "matrix": "matrices",
    "vertex": "vertices",
    "status": "statuses", "quiz": "quizzes",
    "bus": "buses", "gas": "gases", "lens": "lenses", "atlas": "atlases",
    "iris": "irises", "plus": "pluses", "minus": "minuses", "bonus": "bonuses",
    "campus": "campuses", "caucus": "caucuses", "census": "censuses",
    "citrus": "citruses", "circus": "circuses", "corpus": "corpora",
    "genus": "genera", "radius": "radii", "nexus": "nexuses", "sinus": "sinuses",
    "surplus": "surpluses", "virus": "viruses",
}

IRREGULAR_SINGULARS: dict[str, str] = {plural: singular for singular, plural in IRREGULAR_PLURALS.items()}

_VOWELS = "aeiou"


def pluralize(word: str) -> str:
    """``category`` -> ``categories``; words that already look plural are kept."""
    if not word or len(word) > MAX_WORD_LENGTH:
        return word
    lower = word.lower()

    if lower in UNCOUNTABLE_NOUNS:
        return lower
    if lower in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[lower]
    if lower in IRREGULAR_SINGULARS:
        return lower
    if lower.endswith("s") and not lower.endswith("ss"):
        return lower

    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in _VOWELS:
        return lower[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return lower + "es"
    if lower.endswith("f") and not lower.endswith(("ff", "ief", "oof", "eef")):
        return lower[:-1] + "ves"
    if lower.endswith("fe"):
        return lower[:-2] + "ves"
    if lower.endswith("o") and len(lower) > 1 and lower[-2] not in _VOWELS:
        return lower + "es"
    return lower + "s"


def singularize(word: str) -> str:
    """``categories`` -> ``category``; ``boxes`` -> ``box``."""
    if not word or len(word) > MAX_WORD_LENGTH:
        return word
    lower = word.lower()

    if lower in UNCOUNTABLE_NOUNS:
        return lower
    if lower in IRREGULAR_SINGULARS:
        return IRREGULAR_SINGULARS[lower]
    if lower in IRREGULAR_PLURALS:
        return lower

    if lower.endswith("ies") and len(lower) > 3:
        return lower[:-3] + "y"
    if lower.endswith("ves"):
        stem = lower[:-3]
        return stem + "f" if stem.endswith(("l", "r", "n", "a", "o")) else stem + "fe"
    if lower.endswith("zzes"):
        return lower[:-2]
    if lower.endswith("es"):
        stem = lower[:-2]
        if stem.endswith(("ss", "x", "z", "ch", "sh", "o")):
            return stem
        if stem.endswith("s"):
            return stem
    if lower.endswith("s") and len(lower) > 1 and not lower.endswith("ss"):
        return lower[:-1]
    return lower


def singular_plural(word: str) -> tuple[str, str]:
    """Return ``(singular, plural)`` for any form of ``word``."""
    if not word:
        return "", ""
    lower = word.lower()
    if lower in UNCOUNTABLE_NOUNS:
        return lower, lower
    if lower in IRREGULAR_SINGULARS:
        return IRREGULAR_SINGULARS[lower], lower
    if lower in IRREGULAR_PLURALS:
        return lower, IRREGULAR_PLURALS[lower]
    singular = singularize(lower)
    return singular, pluralize(singular)
