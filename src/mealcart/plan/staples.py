"""Auto-check items the user always has on hand."""

from collections.abc import Iterable

from mealcart.schemas import ShoppingItem


def is_staple(name: str, staples: Iterable[str], exclusions: Iterable[str]) -> bool:
    """
    Substring containment on the lowercased name; an exclusion always
    overrides a staple ("brown sugar" excluded, "sugar" staple).
    """
    lower_name = name.lower()
    if not any(staple and staple in lower_name for staple in staples):
        return False
    return not any(exclusion and exclusion in lower_name for exclusion in exclusions)


def apply_staple_checking(
    items: list[ShoppingItem],
    staples: list[str],
    exclusions: list[str],
) -> list[ShoppingItem]:
    """Return copies of `items` with `is_checked` set from the staple lists."""
    if not staples:
        return items

    staples = [s.lower().strip() for s in staples]
    exclusions = [e.lower().strip() for e in exclusions]

    return [
        item.model_copy(update={"is_checked": is_staple(item.name, staples, exclusions)})
        for item in items
    ]
