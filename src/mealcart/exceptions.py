"""Exceptions raised by the shopping list core and its collaborators."""


class MealcartError(Exception):
    """Base exception for mealcart errors."""


class ShoppingListNotFoundError(MealcartError, LookupError):
    """Raised when a shopping list id does not exist."""

    def __init__(self, list_id: str):
        super().__init__("Shopping list not found")
        self.list_id = list_id


class ShoppingItemNotFoundError(MealcartError, LookupError):
    """Raised when an item id does not exist within a shopping list."""

    def __init__(self, list_id: str, item_id: str):
        super().__init__("Item not found")
        self.list_id = list_id
        self.item_id = item_id


class GroupingError(MealcartError, ValueError):
    """Raised when a group/ungroup request is invalid for the targeted items."""


class AssistantError(MealcartError):
    """Raised when the estimation/matching capability fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OperationCancelledError(MealcartError):
    """Raised when a cancellation signal fires during an external call."""
