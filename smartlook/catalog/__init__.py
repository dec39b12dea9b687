"""Brand catalog helpers."""

from .brands import DEFAULT_BRANDS, Brand, is_search_url, search_url

__all__ = ["DEFAULT_BRANDS", "Brand", "is_search_url", "search_url"]
