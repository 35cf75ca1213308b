"""Explicit per-image cache of region sets and their ownership indexes."""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from regionpaint.ownership import OwnershipIndex
from regionpaint.types import RegionSet

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    region_set: RegionSet
    index: Optional[OwnershipIndex] = None


class RegionCache:
    """
    LRU cache keyed by image source id.

    Each entry holds a RegionSet and, once requested, its ownership index.
    Storing a different RegionSet under the same id drops the old index.
    """

    def __init__(self, max_entries: int = 8):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._entries

    def put(self, region_set: RegionSet) -> RegionSet:
        """Store a region set, evicting the least recently used entry if full."""
        key = region_set.source_id
        entry = self._entries.get(key)

        if entry is not None and entry.region_set is region_set:
            self._entries.move_to_end(key)
            return region_set

        self._entries[key] = _CacheEntry(region_set)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted region set '{evicted}' from cache")

        return region_set

    def get(self, source_id: str) -> Optional[RegionSet]:
        entry = self._entries.get(source_id)
        if entry is None:
            return None
        self._entries.move_to_end(source_id)
        return entry.region_set

    def get_or_load(
        self,
        source_id: str,
        loader: Callable[[str], RegionSet]
    ) -> RegionSet:
        """Return the cached region set or load and cache it."""
        region_set = self.get(source_id)
        if region_set is None:
            logger.debug(f"Cache miss for '{source_id}', loading")
            region_set = self.put(loader(source_id))
        return region_set

    def ownership_index(self, region_set: RegionSet) -> OwnershipIndex:
        """Return the ownership index for a region set, building it on first use."""
        self.put(region_set)
        entry = self._entries[region_set.source_id]
        if entry.index is None:
            entry.index = OwnershipIndex.build(region_set)
        return entry.index

    def evict(self, source_id: str) -> bool:
        return self._entries.pop(source_id, None) is not None

    def clear(self):
        self._entries.clear()
