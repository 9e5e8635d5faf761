"""
Bounded in-memory index shared by the registry and the content-script bridge.
"""

from collections import OrderedDict
from typing import Generic, Iterator, List, Optional, Tuple, TypeVar

from loguru import logger

K = TypeVar("K")
V = TypeVar("V")


class FifoIndex(Generic[K, V]):
    """Insertion-ordered map capped at ``capacity`` entries."""

    def __init__(self, capacity: int, name: str = "index"):
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self._capacity = capacity
        self._name = name

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> Optional[V]:
        # Lookups never refresh position
        return self._data.get(key)

    def put(self, key: K, value: V) -> List[K]:
        """Insert or overwrite; an overwrite keeps the original position. Returns evicted keys."""
        self._data[key] = value
        return self._evict_oldest()

    def _evict_oldest(self) -> List[K]:
        evicted = []
        while len(self._data) > self._capacity:
            key, _ = self._data.popitem(last=False)
            evicted.append(key)
        if evicted:
            logger.debug(f"Evicted {len(evicted)} oldest {self._name} entries")
        return evicted

    def items(self) -> Iterator[Tuple[K, V]]:
        return iter(list(self._data.items()))

    def keys(self) -> List[K]:
        return list(self._data.keys())

    def clear(self) -> None:
        self._data.clear()

__all__ = ["FifoIndex"]
