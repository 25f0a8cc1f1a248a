"""
Eviction policies for capacity-bounded containers.

A policy decides which entries survive when a container exceeds its
capacity. Containers never raise on overflow; they ask the policy for
victims and drop them.
"""

from typing import Callable, Dict, Generic, List, Sequence, TypeVar

K = TypeVar('K')
V = TypeVar('V')


class EvictionPolicy(Generic[K, V]):
    """Base policy: keep the `capacity` highest-ranked entries."""

    def rank(self, entry: V) -> float:
        raise NotImplementedError

    def select_victims(self, entries: Dict[K, V], capacity: int) -> List[K]:
        """Return keys to drop so that at most `capacity` remain."""
        overflow = len(entries) - capacity
        if overflow <= 0:
            return []
        # Lowest rank first; insertion order breaks ties (older goes first)
        ordered = sorted(
            enumerate(entries.items()),
            key=lambda item: (self.rank(item[1][1]), item[0]),
        )
        return [key for _, (key, _) in ordered[:overflow]]

    def survivors(self, entries: Sequence[V], capacity: int) -> List[V]:
        """Keep-list variant for plain sequences (order preserved)."""
        if len(entries) <= capacity:
            return list(entries)
        indexed = {i: e for i, e in enumerate(entries)}
        victims = set(self.select_victims(indexed, capacity))
        return [e for i, e in enumerate(entries) if i not in victims]


class ImportanceEviction(EvictionPolicy):
    """
    Importance-ranked eviction.

    Args:
        key: Ranking function, defaults to the entry's `importance`.
    """

    def __init__(self, key: Callable[[object], float] = None):
        self._key = key or (lambda entry: getattr(entry, 'importance', 0.0))

    def rank(self, entry) -> float:
        return self._key(entry)


class LRUEviction(EvictionPolicy):
    """Least-recently-used: drops entries with the oldest access time."""

    def __init__(self, key: Callable[[object], float] = None):
        self._key = key or _last_access

    def rank(self, entry) -> float:
        return self._key(entry)


def _last_access(entry) -> float:
    last = getattr(entry, 'last_retrieved_at', None)
    if last is not None:
        return last
    return getattr(entry, 'created_at', 0.0)
