"""Nodes and edges of a phylogenetic tree, with Newick output and traversals."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional

NIL_SUPPORT = -1.0
NIL_LENGTH = -1.0
NIL_PVALUE = -1.0
NIL_ID = -1
NIL_TIPID = 0
NIL_DEPTH = -1

Visit = tuple["Node", Optional["Node"], Optional["Edge"]]


class TreeError(Exception):
    """Raised when a tree operation cannot be carried out."""


def _format_float(value: float) -> str:
    """Shortest decimal form of a float, never in exponent notation."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _bracketed(comments: list[str]) -> str:
    return "[" + ",".join(comments) + "]"


def _walk_pre(start: "Node", prev: Optional["Node"]) -> Iterator[Visit]:
    """Yield (node, previous node, edge) in pre-order, away from ``prev``."""
    stack: list[Visit] = [(start, prev, None)]
    while stack:
        cur, before, edge = stack.pop()
        yield cur, before, edge
        children = [
            (n, cur, e) for n, e in zip(cur.neighbors, cur.edges) if n is not before
        ]
        stack.extend(reversed(children))


def _walk_post(start: "Node", prev: Optional["Node"]) -> Iterator[Visit]:
    """Yield (node, previous node, edge) in post-order, away from ``prev``."""
    stack: list[tuple[Node, Optional[Node], Optional[Edge], bool]] = [
        (start, prev, None, False)
    ]
    while stack:
        cur, before, edge, expanded = stack.pop()
        if expanded:
            yield cur, before, edge
            continue
        stack.append((cur, before, edge, True))
        children = [
            (n, cur, e, False)
            for n, e in zip(cur.neighbors, cur.edges)
            if n is not before
        ]
        stack.extend(reversed(children))


@dataclass(eq=False)
class Edge:
    """A branch joining a parent (left) node to a child (right) node."""

    left: Optional["Node"] = field(default=None, repr=False)
    right: Optional["Node"] = field(default=None, repr=False)
    length: float = NIL_LENGTH
    support: float = NIL_SUPPORT
    pvalue: float = NIL_PVALUE
    comments: list[str] = field(default_factory=list)
    bitset: Any = field(default=None, repr=False)
    hashcode_left: int = 0
    hashcode_right: int = 0
    ntax_left: int = 0
    ntax_right: int = 0
    id: int = NIL_ID

    def inverse(self) -> None:
        """Swap the orientation of the edge."""
        self.left, self.right = self.right, self.left

    def increment_support(self, support: float) -> None:
        """Add to the support, starting from 0 when it is unset."""
        if self.support == NIL_SUPPORT:
            self.support = 0.0
        self.support += support

    def length_string(self) -> str:
        """Length in its shortest decimal form, or "N/A" when unset."""
        if self.length == NIL_LENGTH:
            return "N/A"
        return _format_float(self.length)

    def support_string(self) -> str:
        """Support in its shortest decimal form, or "N/A" when unset."""
        if self.support == NIL_SUPPORT:
            return "N/A"
        return _format_float(self.support)

    def name(self, rooted: bool) -> str:
        """Name of the clade: the child if rooted, else the lighter side."""
        if rooted or self.ntax_right < self.ntax_left:
            return self.right.name
        return self.left.name

    def tip_present(self, index: int) -> bool:
        """Whether the tip with the given bitset index lies on the right side."""
        if self.bitset is None:
            raise TreeError("bitset of the edge is not initialized")
        return self.bitset.test(index)

    def add_comment(self, comment: str) -> None:
        self.comments.append(comment)

    def comments_string(self) -> str:
        """Comments joined by commas inside brackets."""
        return _bracketed(self.comments)

    def clear_comments(self) -> None:
        self.comments.clear()


@dataclass(eq=False)
class Node:
    """A node of a tree; neighbors and edges are kept in matching order."""

    name: str = ""
    comments: list[str] = field(default_factory=list)
    neighbors: list["Node"] = field(default_factory=list, repr=False)
    edges: list[Edge] = field(default_factory=list, repr=False)
    depth: int = NIL_DEPTH
    root_depth: int = NIL_DEPTH
    id: int = NIL_ID
    tip_id: int = NIL_TIPID

    def is_tip(self) -> bool:
        return len(self.neighbors) == 1

    def add_neighbor(self, other: "Node", edge: Edge) -> None:
        """Append a neighbor reached through the given edge."""
        self.neighbors.append(other)
        self.edges.append(edge)

    def remove_neighbor(self, other: "Node") -> None:
        """Drop a neighbor and the edge leading to it."""
        index = self.node_index(other)
        del self.neighbors[index]
        del self.edges[index]

    def add_comment(self, comment: str) -> None:
        self.comments.append(comment)

    def comments_string(self) -> str:
        """Comments joined by commas inside brackets."""
        return _bracketed(self.comments)

    def clear_comments(self) -> None:
        self.comments.clear()

    def checked_depth(self) -> int:
        """Depth of the node; raises if it has not been computed."""
        if self.depth == NIL_DEPTH:
            raise TreeError("node depth has not been computed")
        return self.depth

    def parent_edge(self) -> Edge:
        """The unique edge whose right node is this node."""
        found: Optional[Edge] = None
        for edge in self.edges:
            if edge.right is self:
                if found is not None:
                    raise TreeError("the node has more than one parent")
                found = edge
        if found is None:
            raise TreeError("the node has no parent: may be the root?")
        return found

    def parent(self) -> "Node":
        """The node at the left end of the parent edge."""
        return self.parent_edge().left

    def edge_index(self, edge: Edge) -> int:
        for index, candidate in enumerate(self.edges):
            if candidate is edge:
                return index
        raise TreeError("the edge is not in the neighbors of the node")

    def node_index(self, other: "Node") -> int:
        for index, candidate in enumerate(self.neighbors):
            if candidate is other:
                return index
        raise TreeError("the node is not in the neighbors of the node")

    def is_connected(self, other: "Node") -> bool:
        return any(candidate is other for candidate in self.neighbors)

    def rotate_neighbors(self, rng: Optional[random.Random] = None) -> None:
        """Shuffle the order of neighbors, keeping each edge with its node."""
        rng = rng or random
        pairs = list(zip(self.neighbors, self.edges))
        rng.shuffle(pairs)
        self.neighbors = [node for node, _ in pairs]
        self.edges = [edge for _, edge in pairs]

    def newick(self, parent: Optional["Node"] = None) -> str:
        """Newick text of the subtree hanging from this node away from ``parent``."""
        out: list[str] = []
        self._write_newick(parent, out)
        return "".join(out)

    def _write_newick(self, parent: Optional["Node"], out: list[str]) -> None:
        if self.neighbors:
            grouped = len(self.neighbors) > 1 or parent is None
            if grouped:
                out.append("(")
            written = 0
            for child, edge in zip(self.neighbors, self.edges):
                if child is parent:
                    continue
                if written:
                    out.append(",")
                child._write_newick(self, out)
                if edge.support != NIL_SUPPORT and child.name == "":
                    out.append(_format_float(edge.support))
                    if edge.pvalue != NIL_PVALUE:
                        out.append("/" + _format_float(edge.pvalue))
                out.extend(f"[{c}]" for c in child.comments)
                if edge.length != NIL_LENGTH:
                    out.append(":" + _format_float(edge.length))
                out.extend(f"[{c}]" for c in edge.comments)
                written += 1
            if grouped:
                out.append(")")
        out.append(self.name)

    def pre_order(self) -> Iterator[Visit]:
        """Pre-order walk of the clade below this node; raises at the root."""
        parent = self.parent()
        return _walk_pre(self, parent)

    def post_order(self) -> Iterator[Visit]:
        """Post-order walk of the clade below this node (whole tree at the root)."""
        try:
            parent: Optional[Node] = self.parent()
        except TreeError:
            parent = None
        return _walk_post(self, parent)