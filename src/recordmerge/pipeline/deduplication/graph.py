"""Union-find used to fold compatible exact-key partitions together."""

from __future__ import annotations

from typing import Dict, List


class UnionFind:
    """Disjoint-set data structure with path compression.

    Unlike a rank-balanced variant, :meth:`union` always keeps the root of its
    first argument, so callers control which member represents the set.
    """

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}
        self._order: Dict[str, int] = {}

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._order[item] = len(self._order)

    def find(self, item: str) -> str:
        parent = self._parent.get(item)
        if parent is None:
            self.add(item)
            return item
        if parent != item:
            self._parent[item] = self.find(parent)
        return self._parent[item]

    def union(self, root_candidate: str, other: str) -> str:
        """Merge the sets and return the surviving root."""

        root_a = self.find(root_candidate)
        root_b = self.find(other)
        if root_a != root_b:
            self._parent[root_b] = root_a
        return root_a

    def components(self) -> Dict[str, List[str]]:
        """Return members per root, both in insertion order."""

        groups: Dict[str, List[str]] = {}
        for item in sorted(self._parent, key=self._order.__getitem__):
            groups.setdefault(self.find(item), []).append(item)
        return groups


__all__ = ["UnionFind"]
