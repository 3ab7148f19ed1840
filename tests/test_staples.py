"""Tests for staple auto-checking."""

from mealcart.plan.staples import apply_staple_checking, is_staple
from mealcart.schemas import ShoppingItem


class TestStaples:
    """Tests for is_staple and apply_staple_checking."""

    def test_exclusion_overrides_staple(self):
        assert is_staple("Sugar", ["sugar"], ["brown sugar"])
        assert not is_staple("Brown Sugar", ["sugar"], ["brown sugar"])
        assert not is_staple("Flour", ["sugar"], [])

    def test_apply_normalizes_lists(self):
        items = [ShoppingItem(name="Brown Sugar"), ShoppingItem(name="Sugar")]

        checked = apply_staple_checking(items, [" Sugar "], ["BROWN sugar"])

        assert [i.is_checked for i in checked] == [False, True]
        # Originals are not mutated
        assert not items[1].is_checked

    def test_staples_replace_checked_state(self):
        items = [ShoppingItem(name="Rice", is_checked=True)]

        assert not apply_staple_checking(items, ["salt"], [])[0].is_checked

    def test_no_staples_returns_items_unchanged(self):
        items = [ShoppingItem(name="Salt", is_checked=True), ShoppingItem(name="Rice")]

        assert apply_staple_checking(items, [], ["salt"]) is items
