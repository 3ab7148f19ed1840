"""
Deterministic ingredient name normalization.

Produces a matching key (`normalized_name`) and a human-readable display
name for each raw ingredient name, so that "2 Diced Tomatoes" and
"diced tomato" land in the same shopping list group.
"""

import re
from dataclasses import dataclass, field

# =============================================================================
# Lookup Tables
# =============================================================================

IRREGULAR_PLURALS: dict[str, str] = {
    # -ves
    "leaves": "leaf",
    "halves": "half",
    "loaves": "loaf",
    "knives": "knife",
    "shelves": "shelf",
    "calves": "calf",
    # -ves that are not -f plurals
    "cloves": "clove",
    "olives": "olive",
    "endives": "endive",
    # -oes
    "tomatoes": "tomato",
    "potatoes": "potato",
    "mangoes": "mango",
    # -ies
    "berries": "berry",
    "cherries": "cherry",
    "strawberries": "strawberry",
    "blueberries": "blueberry",
    "raspberries": "raspberry",
    "blackberries": "blackberry",
    "cranberries": "cranberry",
    "anchovies": "anchovy",
    # Irregular
    "teeth": "tooth",
    "feet": "foot",
    "geese": "goose",
    "mice": "mouse",
}

# Words that look plural (or are mass nouns) and must never be singularized
INVARIANT_WORDS: frozenset[str] = frozenset(
    {
        "fish", "salmon", "tuna", "shrimp", "squid", "sheep", "moose",
        "rice", "pasta", "quinoa", "tofu", "tempeh", "seitan", "couscous",
        "hummus", "feta", "brie", "mozzarella", "parmesan", "cheddar", "swiss",
        "lettuce", "spinach", "kale", "arugula", "watercress", "cabbage",
        "broccoli", "cauliflower", "asparagus", "celery", "parsley", "cilantro",
        "basil", "oregano", "thyme", "rosemary", "sage", "dill", "mint",
        "ginger", "garlic", "cinnamon", "nutmeg", "paprika", "cumin",
        "turmeric", "coriander", "cardamom", "saffron", "vanilla", "chocolate",
        "coffee", "tea", "honey", "molasses", "sugar", "flour", "yeast",
        "butter", "cream", "milk", "yogurt", "cheese", "beef", "pork", "lamb",
        "veal", "venison", "poultry", "chicken", "turkey", "duck", "bacon",
        "ham", "sausage", "citrus", "grits", "oats", "chives",
    }
)

# Preparation/quality words that do not change what is bought
PREPARATION_DESCRIPTORS: frozenset[str] = frozenset(
    {
        # Cutting
        "diced", "chopped", "minced", "sliced", "cubed", "shredded", "grated",
        "crushed", "mashed", "pureed", "julienned", "halved", "quartered",
        "torn", "crumbled", "ground", "whole",
        # State
        "fresh", "dried", "frozen", "canned", "jarred", "packed", "drained",
        "rinsed", "thawed", "raw", "cooked", "roasted", "toasted", "grilled",
        "baked", "fried", "sauteed", "sautéed", "steamed", "boiled", "poached",
        "smoked", "cured", "pickled", "marinated", "blanched",
        # Size
        "large", "medium", "small", "xl", "jumbo", "baby", "mini", "petite",
        "thick", "thin",
        # Quality
        "organic", "natural", "kosher", "halal",
        # Meat
        "boneless", "skinless", "lean", "fatty", "trimmed", "untrimmed",
        # Temperature
        "cold", "chilled", "warm", "hot",
        # Ripeness
        "ripe", "unripe", "overripe", "firm", "soft",
    }
)

# Identity-bearing words kept even when they also read as descriptors
KEEP_WORDS: frozenset[str] = frozenset(
    {
        "black", "white", "red", "green", "yellow", "orange", "brown", "wild",
        "sweet", "hot", "bell", "roma", "cherry", "grape", "beefsteak", "plum",
        "heirloom", "vidalia", "spanish", "italian", "greek", "french",
        "asian", "thai", "japanese", "chinese", "indian", "mexican", "cajun",
        "creole",
    }
)

_SINGULAR_VALUES = frozenset(IRREGULAR_PLURALS.values()) | INVARIANT_WORDS

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")
_QUANTITY_TOKEN = re.compile(r"^\d+(?:[./]\d+)?$|^[½⅓⅔¼¾⅛]$")


def singularize(word: str) -> str:
    """Singularize a single lowercase-able word."""
    lower = word.lower()

    if lower in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[lower]
    if lower in _SINGULAR_VALUES:
        return lower

    if lower.endswith("ies") and len(lower) > 4:
        return lower[:-3] + "y"
    if lower.endswith("ves"):
        return lower[:-3] + "f"
    if lower.endswith("oes") and len(lower) > 4:
        return lower[:-2]
    if lower.endswith("es") and len(lower) > 3:
        if lower.endswith(("shes", "ches", "xes", "zes", "sses")):
            return lower[:-2]
        return lower[:-1]
    if lower.endswith("s") and len(lower) > 2 and not lower.endswith("ss"):
        return lower[:-1]

    return lower


def normalize_punctuation(name: str) -> str:
    """Drop parenthetical text and leading quantities; commas/hyphens become spaces."""
    cleaned = _PARENTHETICAL.sub(" ", name)
    cleaned = cleaned.replace(",", " ").replace("-", " ")
    tokens = cleaned.split()
    while tokens and _QUANTITY_TOKEN.match(tokens[0]):
        tokens.pop(0)
    return " ".join(tokens)


def strip_descriptors(name: str) -> tuple[str, list[str]]:
    """
    Remove preparation descriptors from a punctuation-normalized name.

    Returns:
        (cleaned name, stripped descriptors in order of appearance)
    """
    kept: list[str] = []
    stripped: list[str] = []

    for word in name.lower().split():
        if word in KEEP_WORDS or word not in PREPARATION_DESCRIPTORS:
            kept.append(word)
        else:
            stripped.append(word)

    return " ".join(kept), stripped


@dataclass(frozen=True)
class NormalizedIngredient:
    """Matching key plus display form for one raw ingredient name."""

    normalized_name: str
    display_name: str
    original_name: str
    stripped_descriptors: list[str] = field(default_factory=list)


def normalize_ingredient_name(name: str) -> NormalizedIngredient:
    """
    Normalize an ingredient name for grouping.

    `normalized_name` drops descriptors and singularizes every token;
    `display_name` keeps the descriptors but is otherwise cleaned the same way.
    """
    cleaned = normalize_punctuation(name)
    without_descriptors, descriptors = strip_descriptors(cleaned)

    normalized_name = " ".join(singularize(w) for w in without_descriptors.split())
    display_name = " ".join(singularize(w) for w in cleaned.lower().split())

    return NormalizedIngredient(
        normalized_name=normalized_name,
        display_name=display_name,
        original_name=name,
        stripped_descriptors=descriptors,
    )


def ingredient_names_match(name1: str, name2: str) -> bool:
    """Check whether two names normalize to the same matching key."""
    return (
        normalize_ingredient_name(name1).normalized_name
        == normalize_ingredient_name(name2).normalized_name
    )


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def select_canonical_name(variants: list[str]) -> str:
    """
    Pick the display name for a group of name variants.

    Prefers the variant with the fewest stripped descriptors, then the
    shortest display name, and returns it capitalized.
    """
    if not variants:
        return ""

    normalized = [normalize_ingredient_name(v) for v in variants]
    best = min(
        normalized,
        key=lambda n: (len(n.stripped_descriptors), len(n.display_name)),
    )
    return _capitalize(best.display_name)
