"""
Scope search and the scope lookup cache.

A model's scope is everything reachable by walking up to an ancestor and
back down into that ancestor's descendants. Search order is nearest
first:

    1. the model itself, then its descendants
    2. for each ancestor (parent first): the ancestor, then its
       descendants not already visited

Lookups are memoized in a ScopeCache keyed by the origin model's
unique_id, so two trees that happen to use the same names never share
entries. Any structural change must invalidate the cache for the tree it
touches; StructureEngine does this for every operation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

    from canopy.node import ModelNode

logger = logging.getLogger(__name__)

# Query kinds
BY_TYPE = "type"
BY_NAME = "name"
BY_PATH = "path"

CacheKey = tuple["UUID", str, Hashable]


class ScopeCache:
    """
    Memoized results of scope queries.

    Owned by the root of a model tree (see Simulations) rather than held
    in a module global. No expiry: entries live until invalidated or
    until clear() is called on reload.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self._keys_by_origin: dict[UUID, set[CacheKey]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def query(self, origin: ModelNode, kind: str, param: Hashable) -> Any | None:
        """Return the cached answer for a query, or None if not cached."""
        return self._entries.get((origin.unique_id, kind, param))

    def store(self, origin: ModelNode, kind: str, param: Hashable, value: Any) -> None:
        """Record the answer to a query."""
        key = (origin.unique_id, kind, param)
        self._entries[key] = value
        self._keys_by_origin.setdefault(origin.unique_id, set()).add(key)

    def get_or_compute(
        self,
        origin: ModelNode,
        kind: str,
        param: Hashable,
        compute: Callable[[], Any],
    ) -> Any:
        """Return the cached answer, computing and storing it on a miss."""
        key = (origin.unique_id, kind, param)
        if key in self._entries:
            return self._entries[key]
        value = compute()
        self.store(origin, kind, param, value)
        return value

    def forget(self, node: ModelNode) -> int:
        """Drop entries keyed at a single node. Returns the count removed."""
        keys = self._keys_by_origin.pop(node.unique_id, set())
        for key in keys:
            del self._entries[key]
        return len(keys)

    def invalidate(self, node: ModelNode) -> int:
        """
        Drop every entry whose answer may depend on the region around node.

        Scope queries travel up to ancestors and back down, so any entry
        keyed at a node of the same tree may have walked through node.
        This clears entries for node, all its ancestors, its descendants
        and the rest of the tree it currently belongs to. Other trees
        sharing this cache are not touched.

        Returns:
            Number of entries removed
        """
        removed = 0
        for member in node.root.walk():
            removed += self.forget(member)
        if removed:
            logger.debug("Invalidated %d scope entries around %s", removed, node.full_path)
        return removed

    def clear(self) -> None:
        """Drop everything (simulation reload)."""
        self._entries.clear()
        self._keys_by_origin.clear()


def in_scope(node: ModelNode) -> Iterator[ModelNode]:
    """Yield every model in scope of node, nearest first, without repeats."""
    seen: set[int] = set()
    current: ModelNode | None = node
    while current is not None:
        for member in current.walk():
            if id(member) not in seen:
                seen.add(id(member))
                yield member
        current = current.parent


def cache_for(node: ModelNode) -> ScopeCache | None:
    """The cache owned by the root of node's tree, if it has one."""
    return node.root.scope_cache


def find_all_in_scope(
    node: ModelNode, target: type, cache: ScopeCache | None = None
) -> tuple[ModelNode, ...]:
    """All models in scope of node that are instances of target."""

    def compute() -> tuple[ModelNode, ...]:
        return tuple(m for m in in_scope(node) if isinstance(m, target))

    if cache is None:
        return compute()
    return cache.get_or_compute(node, BY_TYPE, target, compute)


def find_in_scope(
    node: ModelNode, target: type | str, cache: ScopeCache | None = None
) -> ModelNode | None:
    """
    Nearest model in scope matching target.

    Args:
        node: Origin of the search
        target: A class to match by instance, or an exact model name
        cache: Optional cache to consult

    Returns:
        The nearest match, or None
    """
    if not isinstance(target, str):
        matches = find_all_in_scope(node, target, cache)
        return matches[0] if matches else None

    def compute() -> ModelNode | None:
        return next((m for m in in_scope(node) if m.name == target), None)

    if cache is None:
        return compute()
    return cache.get_or_compute(node, BY_NAME, target, compute)


def find_by_path(
    node: ModelNode, path: str, cache: ScopeCache | None = None
) -> ModelNode | None:
    """
    Look up a model by dotted path.

    A path starting with '.' is absolute from the tree root
    (".Simulations.Field.Wheat"); otherwise the first element is found in
    scope of node by name and the rest are walked as children.
    """

    def compute() -> ModelNode | None:
        parts = [p for p in path.split(".") if p]
        if not parts:
            return None
        if path.startswith("."):
            current: ModelNode | None = node.root
            if current.name != parts[0]:
                return None
        else:
            current = find_in_scope(node, parts[0])
        for part in parts[1:]:
            if current is None:
                return None
            current = current.find_child(part)
        return current

    if cache is None:
        return compute()
    return cache.get_or_compute(node, BY_PATH, path, compute)
