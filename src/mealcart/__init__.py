"""Mealcart: shopping lists aggregated from planned meals."""

__version__ = "0.1.0"
