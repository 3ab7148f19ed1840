"""Shopping list generation, editing and export."""

from mealcart.plan.export import ExportFormat, ExportOptions, export_shopping_list
from mealcart.plan.grouping import ShoppingListEditor
from mealcart.plan.shopping_list import ShoppingListBuilder
from mealcart.plan.staples import apply_staple_checking, is_staple

__all__ = [
    "ExportFormat",
    "ExportOptions",
    "ShoppingListBuilder",
    "ShoppingListEditor",
    "apply_staple_checking",
    "export_shopping_list",
    "is_staple",
]
