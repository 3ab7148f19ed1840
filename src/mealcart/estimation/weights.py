"""Reference weights for count and volume measures of common ingredients."""

# Approximate grams in one US cup
GRAMS_PER_CUP: dict[str, float] = {
    # Flours & baking
    "flour": 125,
    "all-purpose flour": 125,
    "bread flour": 127,
    "whole wheat flour": 120,
    "almond flour": 96,
    "coconut flour": 112,
    "cornstarch": 128,
    "baking powder": 230,
    "baking soda": 230,
    # Sugars
    "sugar": 200,
    "granulated sugar": 200,
    "brown sugar": 220,
    "powdered sugar": 120,
    "honey": 340,
    "maple syrup": 315,
    "molasses": 328,
    # Dairy
    "milk": 245,
    "buttermilk": 245,
    "heavy cream": 238,
    "sour cream": 242,
    "yogurt": 245,
    "greek yogurt": 280,
    "cream cheese": 232,
    "butter": 227,
    "cheese": 113,  # shredded
    "parmesan cheese": 100,
    "ricotta cheese": 246,
    # Oils
    "oil": 218,
    "olive oil": 216,
    # Grains & pasta
    "rice": 185,  # uncooked
    "brown rice": 190,
    "oats": 80,
    "quinoa": 170,
    "pasta": 100,  # dry
    "breadcrumbs": 108,
    "panko": 60,
    # Proteins
    "chicken": 140,  # diced
    "chicken breast": 140,
    "ground beef": 225,
    "ground turkey": 225,
    "ground pork": 225,
    "bacon": 150,
    "tofu": 252,
    "black bean": 180,
    "chickpea": 164,
    "lentil": 198,
    # Vegetables
    "onion": 160,  # chopped
    "garlic": 136,  # minced
    "tomato": 180,
    "bell pepper": 150,
    "carrot": 128,
    "celery": 101,
    "broccoli": 91,
    "spinach": 30,
    "lettuce": 47,
    "cabbage": 89,
    "mushroom": 70,
    "corn": 154,
    "pea": 145,
    "green bean": 110,
    "zucchini": 124,
    "potato": 150,
    "sweet potato": 133,
    # Fruits
    "apple": 125,
    "banana": 150,
    "blueberry": 145,
    "strawberry": 152,
    "raspberry": 123,
    "lemon juice": 244,
    "lime juice": 246,
    "orange juice": 248,
    "raisin": 145,
    # Nuts & seeds
    "almond": 143,
    "walnut": 120,
    "pecan": 109,
    "peanut": 146,
    "cashew": 137,
    "peanut butter": 258,
    "sesame seed": 144,
    "chia seed": 170,
    # Liquids & sauces
    "water": 237,
    "broth": 240,
    "stock": 240,
    "soy sauce": 255,
    "tomato sauce": 245,
    "tomato paste": 262,
    "salsa": 259,
    "vinegar": 239,
    "wine": 236,
    # Condiments
    "mayonnaise": 220,
    "mustard": 250,
    "ketchup": 240,
}

# Approximate grams for one item of a count-measured ingredient
GRAMS_PER_EACH: dict[str, float] = {
    "egg": 50,
    "chicken breast": 170,
    "chicken thigh": 115,
    "garlic clove": 3,
    "garlic": 3,  # per clove
    "onion": 150,  # medium
    "potato": 150,
    "carrot": 60,
    "celery stalk": 40,
    "celery": 40,
    "banana": 118,
    "apple": 182,
    "lemon": 84,
    "lime": 67,
    "orange": 131,
    "avocado": 200,
    "tomato": 123,
    "bell pepper": 120,
    "jalapeno": 14,
    "bread": 30,  # slice
    "tortilla": 45,
    "burger bun": 50,
    "hot dog bun": 43,
    "bacon": 8,  # strip
}


def find_best_weight_match(name: str, lookup: dict[str, float]) -> str | None:
    """
    Find the lookup key that best describes `name`.

    Tries an exact key, then a key contained in the name (longest first, so
    "chicken breast" wins over "chicken"), then a key containing the name.
    """
    name = name.lower().strip()
    if not name:
        return None
    if name in lookup:
        return name

    keys_by_length = sorted(lookup, key=len, reverse=True)
    for key in keys_by_length:
        if key in name:
            return key
    for key in keys_by_length:
        if len(name) > 2 and name in key:
            return key
    return None


def grams_per_each(name: str) -> float | None:
    key = find_best_weight_match(name, GRAMS_PER_EACH)
    return GRAMS_PER_EACH[key] if key else None


def grams_per_cup(name: str) -> float | None:
    key = find_best_weight_match(name, GRAMS_PER_CUP)
    return GRAMS_PER_CUP[key] if key else None
