"""In-memory wardrobe storage."""

from .wardrobe import (
    ALL_CATEGORIES,
    Category,
    GarmentEntry,
    SelectionSet,
    WardrobeStore,
    WardrobeView,
    category_counts,
    new_entry_id,
)

__all__ = [
    "ALL_CATEGORIES",
    "Category",
    "GarmentEntry",
    "SelectionSet",
    "WardrobeStore",
    "WardrobeView",
    "category_counts",
    "new_entry_id",
]
