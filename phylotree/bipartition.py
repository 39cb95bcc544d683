"""Bipartition bitsets and hash codes of edges, and edge-level statistics."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from phylotree.model import NIL_SUPPORT, Edge, Node, TreeError

_MASK64 = (1 << 64) - 1
_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3


class Bitset:
    """A fixed-length set of bits; bit i tells on which side tip i lies."""

    __slots__ = ("length", "_bits")

    def __init__(self, length: int = 0) -> None:
        if length < 0:
            raise ValueError("bitset length must be non-negative")
        self.length = length
        self._bits = 0

    def set(self, index: int) -> None:
        """Set a bit, growing the bitset when the index is past its end."""
        if index < 0:
            raise ValueError("bit index must be non-negative")
        if index >= self.length:
            self.length = index + 1
        self._bits |= 1 << index

    def test(self, index: int) -> bool:
        return 0 <= index < self.length and bool((self._bits >> index) & 1)

    def clear_all(self) -> None:
        self._bits = 0

    def count(self) -> int:
        return bin(self._bits).count("1")

    def none(self) -> bool:
        return self._bits == 0

    def equal_or_complement(self, other: "Bitset") -> bool:
        """Whether both bitsets are equal, or one is the complement of the other."""
        if self.length != other.length:
            return False
        mask = (1 << self.length) - 1
        return self._bits == other._bits or self._bits == (other._bits ^ mask)

    def dump(self) -> str:
        """Bits from the highest index down to index 0."""
        if self.length == 0:
            return ""
        return format(self._bits, f"0{self.length}b")

    def copy(self) -> "Bitset":
        clone = Bitset(self.length)
        clone._bits = self._bits
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self.length == other.length and self._bits == other._bits

    def __hash__(self) -> int:
        return hash((self.length, self._bits))

    def __repr__(self) -> str:
        return f"Bitset({self.dump()!r})"


def tax_hash(name: str) -> int:
    """64-bit FNV-1a hash of a taxon name."""
    value = _FNV_OFFSET
    for byte in name.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK64
    return value


def _pre_order(root: Node) -> list[tuple[Node, Optional[Node], Optional[Edge]]]:
    order: list[tuple[Node, Optional[Node], Optional[Edge]]] = []
    stack: list[tuple[Node, Optional[Node], Optional[Edge]]] = [(root, None, None)]
    while stack:
        cur, prev, edge = stack.pop()
        order.append((cur, prev, edge))
        stack.extend(
            reversed(
                [(n, cur, e) for n, e in zip(cur.neighbors, cur.edges) if n is not prev]
            )
        )
    return order


def compute_edge_hashes(root: Node) -> None:
    """Fill tip counts and hash codes of both sides of every edge below ``root``."""
    order = _pre_order(root)

    for cur, prev, edge in reversed(order):
        if edge is None:
            continue
        edge.ntax_right = 0
        edge.hashcode_right = 0
        if cur.is_tip():
            edge.hashcode_right = tax_hash(cur.name)
            edge.ntax_right = 1
            continue
        for neighbor, child_edge in zip(cur.neighbors, cur.edges):
            if neighbor is not prev:
                edge.hashcode_right = (
                    edge.hashcode_right + child_edge.hashcode_right
                ) & _MASK64
                edge.ntax_right += child_edge.ntax_right

    for cur, prev, edge in order:
        if edge is None:
            continue
        edge.ntax_left = 0
        edge.hashcode_left = 0
        for neighbor, other in zip(prev.neighbors, prev.edges):
            if neighbor is cur:
                continue
            if neighbor is other.right:
                edge.hashcode_left = (edge.hashcode_left + other.hashcode_right) & _MASK64
                edge.ntax_left += other.ntax_right
            elif neighbor is other.left:
                edge.hashcode_left = (edge.hashcode_left + other.hashcode_left) & _MASK64
                edge.ntax_left += other.ntax_left
            else:
                raise TreeError("the edge is not oriented as it should be")


def hash_code(edge: Edge) -> int:
    """Hash of the bipartition: the hash of its lighter side (0 if not computed)."""
    if edge.ntax_left == edge.ntax_right:
        return (edge.hashcode_left * edge.hashcode_right) & _MASK64
    if edge.ntax_left < edge.ntax_right:
        return edge.hashcode_left
    return edge.hashcode_right


def same_bipartition(edge: Edge, other: Edge) -> bool:
    """Whether both edges split the tips the same way; bitsets must be set."""
    if hash_code(edge) != hash_code(other):
        return False
    return edge.bitset.equal_or_complement(other.bitset)


def topo_depth(edge: Edge) -> int:
    """Number of tips on the lighter side of the edge."""
    if edge.ntax_left == 0 or edge.ntax_right == 0:
        raise TreeError("cannot compute topodepth, subtree sizes not computed")
    return min(edge.ntax_left, edge.ntax_right)


def dump_bitset(edge: Edge) -> str:
    """The edge's bitset as a string of bits, or "nil" when it is not set."""
    if edge.bitset is None:
        return "nil"
    return edge.bitset.dump() + "."


def find_edge(edge: Edge, edges: Iterable[Edge]) -> Optional[Edge]:
    """Return ``edge`` if one of ``edges`` has the same bipartition, else None."""
    uninitialized = "bitsets have not been initialized"
    empty = "one edge has an empty bitset: may be bitsets have not been updated?"
    if edge.bitset is None:
        raise TreeError(uninitialized)
    if edge.bitset.none():
        raise TreeError(empty)
    for other in edges:
        if other.bitset is None:
            raise TreeError(uninitialized)
        if edge.right.is_tip() != other.right.is_tip():
            continue
        if hash_code(edge) != hash_code(other):
            continue
        if edge.bitset.equal_or_complement(other.bitset):
            if other.bitset.none():
                raise TreeError(empty)
            return edge
    return None


def neighbor_edges(edge: Edge, max_dist: int) -> list[Edge]:
    """Edges at most ``max_dist`` branches away from ``edge``, itself excluded."""
    found: list[Edge] = []
    for start, prev in ((edge.left, edge.right), (edge.right, edge.left)):
        stack: list[tuple[Node, Edge, Node, int]] = [(start, edge, prev, 0)]
        while stack:
            cur, cur_edge, before, dist = stack.pop()
            if dist > max_dist:
                continue
            if dist > 0:
                found.append(cur_edge)
            stack.extend(
                reversed(
                    [
                        (n, e, cur, dist + 1)
                        for n, e in zip(cur.neighbors, cur.edges)
                        if n is not before
                    ]
                )
            )
    return found


def locality(
    edge: Edge, max_dist: int, cutoff: float
) -> tuple[float, float, float, bool, bool]:
    """Support differences with nearby edges.

    Returns (mean diff, min diff, max diff, hx, hy) where hx tells whether a
    neighbor has support above ``cutoff`` and hy whether this edge has.
    """
    total = 0.0
    max_diff = 0.0
    min_diff = 0.0
    hx = False
    hy = edge.support != NIL_SUPPORT and edge.support > cutoff
    counted = 0
    for neighbor in neighbor_edges(edge, max_dist):
        if neighbor.support == NIL_SUPPORT:
            continue
        if neighbor.support > cutoff:
            hx = True
        diff = abs(edge.support - neighbor.support)
        total += diff
        max_diff = max(max_diff, diff)
        min_diff = diff if counted == 0 else min(min_diff, diff)
        counted += 1
    mean = total / counted if counted else math.nan
    return mean, min_diff, max_diff, hx, hy


def stats_string(edge: Edge, with_edge_comments: bool) -> str:
    """Tab-separated description of the edge.

    Fields: length, support, is tip, depth, topological depth, root depth,
    name of the child node and, optionally, edge comments, name of the parent
    node, child comments and parent comments.
    """
    depth = min(edge.left.checked_depth(), edge.right.checked_depth())
    topo = topo_depth(edge)
    fields = [
        edge.length_string(),
        edge.support_string(),
        "true" if edge.right.is_tip() else "false",
        str(depth),
        str(topo),
        str(edge.right.root_depth),
        edge.right.name,
    ]
    if with_edge_comments:
        fields.extend(
            [
                edge.comments_string(),
                edge.left.name,
                edge.right.comments_string(),
                edge.left.comments_string(),
            ]
        )
    return "\t".join(fields)