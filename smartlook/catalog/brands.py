"""Simulated retail catalog: the brands the shopping flow can recommend from."""

from __future__ import annotations

from enum import Enum
from urllib.parse import parse_qs, quote_plus, urlsplit

SEARCH_URL_PREFIX = "https://www.google.com/search?q="


class Brand(str, Enum):
    """Closed set of Taiwanese retail brands."""

    UNIQLO = "Uniqlo"
    GU = "GU"
    LATIV = "Lativ"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


DEFAULT_BRANDS: tuple[Brand, ...] = (Brand.UNIQLO,)


def search_url(brand: str, name: str) -> str:
    """Return a search-engine query URL for ``brand name``."""

    return SEARCH_URL_PREFIX + quote_plus(f"{brand} {name}".strip())


def is_search_url(url: str) -> bool:
    """Check that ``url`` is a well-formed Google search query with a non-empty ``q``."""

    parts = urlsplit(url)
    if parts.scheme != "https" or parts.netloc != "www.google.com" or parts.path != "/search":
        return False
    query = parse_qs(parts.query).get("q", [])
    return bool(query and query[0].strip())
