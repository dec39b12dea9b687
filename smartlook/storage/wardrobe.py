"""In-memory wardrobe store and try-on selection set."""

from __future__ import annotations

import base64
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

ALL_CATEGORIES = "all"
_ALL_ALIASES = {ALL_CATEGORIES, "全部"}


class Category(str, Enum):
    """Closed garment category set understood by the analysis schema."""

    TOP = "上衣"
    BOTTOM = "下著"
    INNER = "內搭"
    OUTERWEAR = "外套"
    SHOES = "鞋子"
    ACCESSORY = "配飾"
    OTHER = "其他"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


_last_id = 0


def new_entry_id() -> str:
    """Return a unique id derived from the monotonic nanosecond clock."""

    global _last_id
    candidate = time.monotonic_ns()
    _last_id = candidate if candidate > _last_id else _last_id + 1
    return str(_last_id)


@dataclass(slots=True, frozen=True)
class GarmentEntry:
    """A confirmed wardrobe item. Never modified after creation."""

    id: str
    image: bytes
    category: Category
    description: str
    mime_type: str = "image/jpeg"
    created_at: float = field(default_factory=time.time)

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.image).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class WardrobeView:
    """Lazy, restartable view over the wardrobe filtered by category."""

    def __init__(self, entries: deque[GarmentEntry], category: Category | None) -> None:
        self._entries = entries
        self._category = category

    def __iter__(self) -> Iterator[GarmentEntry]:
        if self._category is None:
            return iter(self._entries)
        return (entry for entry in self._entries if entry.category == self._category)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None


class WardrobeStore:
    """Ordered collection of garments, most recent first."""

    def __init__(self, entries: Iterable[GarmentEntry] = ()) -> None:
        self._entries: deque[GarmentEntry] = deque()
        self._by_id: dict[str, GarmentEntry] = {}
        for entry in entries:
            self.append(entry)

    def append(self, entry: GarmentEntry) -> None:
        """Insert ``entry`` at the head of the wardrobe."""

        if entry.id in self._by_id:
            raise ValueError(f"Garment id {entry.id!r} already exists in the wardrobe.")
        self._entries.appendleft(entry)
        self._by_id[entry.id] = entry

    def filter(self, category: Category | str | None = ALL_CATEGORIES) -> WardrobeView:
        """Return a view restricted to ``category`` or the full wardrobe for ``all``."""

        if category is None or category in _ALL_ALIASES:
            return WardrobeView(self._entries, None)
        return WardrobeView(self._entries, Category(category))

    def get(self, entry_id: str) -> GarmentEntry:
        try:
            return self._by_id[entry_id]
        except KeyError:
            raise KeyError(f"Unknown garment id: {entry_id}") from None

    def ids(self) -> list[str]:
        return [entry.id for entry in self._entries]

    def head(self) -> GarmentEntry | None:
        return self._entries[0] if self._entries else None

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._by_id

    def __iter__(self) -> Iterator[GarmentEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class SelectionSet:
    """Insertion-ordered set of garment ids picked for a try-on."""

    def __init__(self, store: WardrobeStore) -> None:
        self._store = store
        self._ids: dict[str, None] = {}

    def toggle(self, entry_id: str) -> bool:
        """Flip membership of ``entry_id``; return ``True`` when it is now selected."""

        if entry_id in self._ids:
            del self._ids[entry_id]
            return False
        if entry_id not in self._store:
            raise KeyError(f"Unknown garment id: {entry_id}")
        self._ids[entry_id] = None
        return True

    def clear(self) -> None:
        self._ids.clear()

    def ordered(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


def category_counts(store: WardrobeStore) -> dict[str, int]:
    """Return the number of garments per category, including ``all``."""

    counts = {ALL_CATEGORIES: len(store)}
    for category, group in itertools.groupby(sorted(store, key=lambda e: e.category.value), key=lambda e: e.category):
        counts[category.value] = sum(1 for _ in group)
    return counts
