"""Bounded LRU cache for session search responses."""

import json
from collections import OrderedDict
from typing import Any, Generic, Hashable, TypeVar

V = TypeVar("V")

CacheKey = tuple[str, int, str]


def make_cache_key(query: str, top_k: int, filters: dict[str, Any] | None = None) -> CacheKey:
    """Lowercased query + top_k + canonical filters.

    Filters are part of the key so that the same text with different filters
    never shares an entry.
    """
    canonical = json.dumps(filters or {}, sort_keys=True, default=str)
    return (query.lower(), top_k, canonical)


class QueryCache(Generic[V]):
    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: OrderedDict[Hashable, V] = OrderedDict()

    def get(self, key: Hashable) -> V | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        if len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
