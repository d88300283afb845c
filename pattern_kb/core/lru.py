"""Intrusive doubly-linked list for O(1) LRU ordering.

The list holds only keys. Owners keep a reference to each key's node next
to their own lookup map, so promoting, unlinking and evicting an entry never
requires a scan.

Usage:
    from pattern_kb.core.lru import LRUList

    order: LRUList[str] = LRUList()
    node = order.push_front("a.ts")
    order.push_front("b.ts")
    order.move_to_front(node)        # "a.ts" is now most recently used
    victim = order.pop_back()        # "b.ts"
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, TypeVar

K = TypeVar("K")


class LRUNode(Generic[K]):
    """A list node. Owned by exactly one LRUList while linked."""

    __slots__ = ("key", "prev", "next", "linked")

    def __init__(self, key: K) -> None:
        self.key = key
        self.prev: LRUNode[K] | None = None
        self.next: LRUNode[K] | None = None
        self.linked = False

    def __repr__(self) -> str:
        return f"LRUNode({self.key!r})"


class LRUList(Generic[K]):
    """Doubly-linked list ordered from most to least recently used.

    Head is the most recently used node, tail the least recently used.
    Every operation is O(1).
    """

    def __init__(self) -> None:
        self._head: LRUNode[K] | None = None
        self._tail: LRUNode[K] | None = None
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[K]:
        """Iterate keys from most to least recently used."""
        node = self._head
        while node is not None:
            yield node.key
            node = node.next

    @property
    def head(self) -> LRUNode[K] | None:
        """Most recently used node."""
        return self._head

    @property
    def tail(self) -> LRUNode[K] | None:
        """Least recently used node."""
        return self._tail

    def push_front(self, key: K) -> LRUNode[K]:
        """Create a node for ``key`` and link it as most recently used."""
        node = LRUNode(key)
        self._link_front(node)
        return node

    def move_to_front(self, node: LRUNode[K]) -> None:
        """Promote an already-linked node to most recently used."""
        if node is self._head:
            return
        self.unlink(node)
        self._link_front(node)

    def unlink(self, node: LRUNode[K]) -> None:
        """Detach a node. Unlinking a detached node is a no-op."""
        if not node.linked:
            return
        if node.prev is not None:
            node.prev.next = node.next
        else:
            self._head = node.next
        if node.next is not None:
            node.next.prev = node.prev
        else:
            self._tail = node.prev
        node.prev = None
        node.next = None
        node.linked = False
        self._length -= 1

    def pop_back(self) -> K | None:
        """Unlink and return the least recently used key, or None if empty."""
        node = self._tail
        if node is None:
            return None
        self.unlink(node)
        return node.key

    def clear(self) -> None:
        node = self._head
        while node is not None:
            following = node.next
            node.prev = None
            node.next = None
            node.linked = False
            node = following
        self._head = None
        self._tail = None
        self._length = 0

    def _link_front(self, node: LRUNode[K]) -> None:
        node.prev = None
        node.next = self._head
        if self._head is not None:
            self._head.prev = node
        self._head = node
        if self._tail is None:
            self._tail = node
        node.linked = True
        self._length += 1
