"""Category registry: routing, database and filter configuration per pipeline variant."""

from feedline.categories.category import Category
from feedline.categories.registry import DEFAULT_CATEGORY, CategoryRegistry

__all__ = ["Category", "CategoryRegistry", "DEFAULT_CATEGORY"]
