"""Byte-keyed trie dictionary whose nodes come from a bounded pool."""

from __future__ import annotations

from collections.abc import Iterator

_MISSING = object()


class TrieKeyError(ValueError):
    """Raised when a key is missing or empty."""


class TrieExhaustedError(RuntimeError):
    """Raised when the node pool has no free node left."""


class _TrieNode:
    __slots__ = ("children", "values")

    def __init__(self) -> None:
        self.children: dict[int, _TrieNode] = {}
        self.values: dict[int, int] = {}


class TrieNodePool:
    """Hands out trie nodes up to a fixed limit and keeps count of those in use."""

    def __init__(self, node_count_limit: int) -> None:
        if node_count_limit <= 0:
            raise ValueError(f"invalid node_count_limit {node_count_limit}")
        self.node_count_limit = node_count_limit
        self._used = 0

    def acquire(self) -> _TrieNode:
        """Take one fresh node from the pool."""
        if self._used >= self.node_count_limit:
            raise TrieExhaustedError(
                f"trie nodes depleted: {self._used} >= {self.node_count_limit}"
            )
        self._used += 1
        return _TrieNode()

    def release(self, count: int) -> None:
        """Return ``count`` nodes to the pool."""
        if count < 0 or count > self._used:
            raise ValueError(f"cannot release {count} of {self._used} nodes")
        self._used -= count

    def used_nodes(self) -> int:
        """Number of nodes currently taken from the pool."""
        return self._used


def _encode_key(key: str | bytes | None) -> bytes:
    if key is None:
        raise TrieKeyError("key is None")
    raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if not raw:
        raise TrieKeyError("key is empty")
    return raw


class TrieDict:
    """Mapping from non-empty byte strings to integers.

    String keys are stored as their UTF-8 encoding; ``items`` yields bytes keys
    in byte order, each key before the keys it is a prefix of.
    """

    def __init__(self, pool: TrieNodePool) -> None:
        self._pool = pool
        self._root: _TrieNode | None = pool.acquire()

    def _require_root(self) -> _TrieNode:
        if self._root is None:
            raise RuntimeError("trie dictionary has been destroyed")
        return self._root

    def _find_parent(self, raw: bytes) -> _TrieNode | None:
        node: _TrieNode | None = self._require_root()
        for byte in raw[:-1]:
            node = node.children.get(byte)
            if node is None:
                return None
        return node

    def set(self, key: str | bytes, value: int) -> bool:
        """Store ``value`` under ``key``; return whether anything changed."""
        raw = _encode_key(key)
        node = self._require_root()
        for byte in raw[:-1]:
            child = node.children.get(byte)
            if child is None:
                child = self._pool.acquire()
                node.children[byte] = child
            node = child
        last = raw[-1]
        if node.values.get(last, _MISSING) == value:
            return False
        node.values[last] = value
        return True

    def get(self, key: str | bytes, default: int | None = None) -> int | None:
        """Return the value stored under ``key``, or ``default``."""
        raw = _encode_key(key)
        node = self._find_parent(raw)
        if node is None:
            return default
        return node.values.get(raw[-1], default)

    def delete(self, key: str | bytes) -> bool:
        """Remove ``key``; return whether it was present."""
        raw = _encode_key(key)
        node = self._find_parent(raw)
        if node is None or raw[-1] not in node.values:
            return False
        del node.values[raw[-1]]
        return True

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, bytes)):
            return False
        return self.get(key, _MISSING) is not _MISSING

    def items(self) -> Iterator[tuple[bytes, int]]:
        """Yield ``(key, value)`` pairs in byte order."""
        yield from self._walk(self._require_root(), b"")

    def _walk(self, node: _TrieNode, prefix: bytes) -> Iterator[tuple[bytes, int]]:
        for byte in sorted(node.values.keys() | node.children.keys()):
            key = prefix + bytes((byte,))
            if byte in node.values:
                yield key, node.values[byte]
            child = node.children.get(byte)
            if child is not None:
                yield from self._walk(child, key)

    def destroy(self) -> None:
        """Give every node of this dictionary back to the pool."""
        if self._root is None:
            return
        count = 0
        stack = [self._root]
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(node.children.values())
        self._root = None
        self._pool.release(count)