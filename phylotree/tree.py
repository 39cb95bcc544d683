"""Phylogenetic trees: structure, traversal, indexes and bipartition comparison."""

from __future__ import annotations

import re
from contextlib import suppress
from typing import Iterable, Iterator, Optional

from phylotree.bipartition import Bitset, compute_edge_hashes, find_edge
from phylotree.model import NIL_DEPTH, Edge, Node, TreeError

Visit = tuple[Node, Optional[Node], Optional[Edge]]


def _walk_pre(start: Node, prev: Optional[Node]) -> Iterator[Visit]:
    stack: list[Visit] = [(start, prev, None)]
    while stack:
        cur, before, edge = stack.pop()
        yield cur, before, edge
        stack.extend(
            reversed(
                [(n, cur, e) for n, e in zip(cur.neighbors, cur.edges) if n is not before]
            )
        )


def _walk_post(start: Node, prev: Optional[Node]) -> Iterator[Visit]:
    stack: list[tuple[Node, Optional[Node], Optional[Edge], bool]] = [
        (start, prev, None, False)
    ]
    while stack:
        cur, before, edge, expanded = stack.pop()
        if expanded:
            yield cur, before, edge
            continue
        stack.append((cur, before, edge, True))
        stack.extend(
            reversed(
                [
                    (n, cur, e, False)
                    for n, e in zip(cur.neighbors, cur.edges)
                    if n is not before
                ]
            )
        )


def _copy_node(node: Node) -> Node:
    return Node(
        name=node.name, comments=list(node.comments), depth=node.depth, id=node.id
    )


def _copy_edge_attributes(source: Edge, target: Edge) -> None:
    target.length = source.length
    target.support = source.support
    target.pvalue = source.pvalue
    target.id = source.id
    if source.bitset is not None:
        target.bitset = source.bitset.copy()
    target.ntax_left = source.ntax_left
    target.ntax_right = source.ntax_right
    target.hashcode_left = source.hashcode_left
    target.hashcode_right = source.hashcode_right


def common_edges(
    edges1: Iterable[Edge], edges2: Iterable[Edge], tip_edges: bool
) -> tuple[int, int]:
    """Count edges of the first set absent from the second, and common edges.

    Bitsets must be up to date; tip names are not checked.
    """
    others = list(edges2)
    counted = 0
    common = 0
    for edge in edges1:
        if tip_edges or not edge.right.is_tip():
            counted += 1
            if find_edge(edge, others) is not None:
                common += 1
    return counted - common, common


class Tree:
    """A tree with a root node and an index from tip names to tip nodes."""

    def __init__(self, root: Optional[Node] = None) -> None:
        self.root: Optional[Node] = root
        self.tip_index_map: dict[str, Node] = {}

    # Structure ---------------------------------------------------------

    def is_rooted(self) -> bool:
        """True when the root has exactly two neighbors."""
        return len(self.root.neighbors) == 2

    def _oriented_edges(self, internal_only: bool) -> list[Edge]:
        out: list[Edge] = []
        stack = [
            e
            for e in reversed(self.root.edges)
            if not (internal_only and e.right.is_tip())
        ]
        while stack:
            edge = stack.pop()
            out.append(edge)
            right = edge.right
            if len(right.neighbors) > 1:
                stack.extend(
                    reversed(
                        [
                            c
                            for c in right.edges
                            if c.left is right
                            and not (internal_only and c.right.is_tip())
                        ]
                    )
                )
        return out

    def edges(self) -> list[Edge]:
        """All edges, in pre-order following edge orientation."""
        return self._oriented_edges(False)

    def internal_edges(self) -> list[Edge]:
        """Edges whose child node is not a tip."""
        return self._oriented_edges(True)

    def tip_edges(self) -> list[Edge]:
        """Edges leading to tips."""
        return [e for e in self.edges() if e.right.is_tip()]

    def nodes(self) -> list[Node]:
        """All nodes in pre-order from the root."""
        return [cur for cur, _, _ in self.pre_order()]

    def tips(self) -> list[Node]:
        """All tips in pre-order from the root."""
        return [cur for cur, _, _ in self.pre_order() if cur.is_tip()]

    def select_nodes(self, pattern: str) -> list[Node]:
        """Nodes whose name matches the regular expression anywhere."""
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise TreeError(f"malformed regular expression: {pattern}") from exc
        return [n for n in self.nodes() if regex.search(n.name)]

    def pre_order(self) -> Iterator[Visit]:
        """Yield (node, previous node, edge) in pre-order from the root."""
        return _walk_pre(self.root, None)

    def post_order(self) -> Iterator[Visit]:
        """Yield (node, previous node, edge) in post-order from the root."""
        return _walk_post(self.root, None)

    # Output ------------------------------------------------------------

    def newick(self) -> str:
        """Newick text of the tree."""
        text = self.root.newick(None)
        text += "".join(f"[{c}]" for c in self.root.comments)
        return text + ";"

    def __str__(self) -> str:
        return self.newick()

    def nexus(self) -> str:
        """Nexus text with a taxa block and a trees block."""
        tips = self.tips()
        lines = [
            "#NEXUS",
            "BEGIN TAXA;",
            f" DIMENSIONS NTAX={len(tips)};",
            " TAXLABELS" + "".join(" " + t.name for t in tips) + ";",
            "END;",
            "BEGIN TREES;",
            "  TREE tree1 = " + self.newick(),
            "END;",
        ]
        return "\n".join(lines) + "\n"

    # Tip index ---------------------------------------------------------

    def sorted_tips(self) -> list[Node]:
        """Tips sorted by name, i.e. in bitset order."""
        return sorted(self.tips(), key=lambda n: n.name)

    def update_tip_index(self) -> None:
        """Rebuild the tip name index; tip ids follow alphabetical order."""
        self.tip_index_map.clear()
        for position, tip in enumerate(self.sorted_tips()):
            if tip.name in self.tip_index_map:
                raise TreeError(
                    "cannot create a tip index when several tips have the same name"
                )
            self.tip_index_map[tip.name] = tip
            tip.tip_id = position

    def _require_index(self) -> None:
        if not self.tip_index_map:
            raise TreeError("no tips in the index, tip name index is not initialized")

    def tip_index(self, name: str) -> int:
        """Bitset index of the named tip."""
        return self.tip_node(name).tip_id

    def tip_node(self, name: str) -> Node:
        """The tip node with the given name."""
        self._require_index()
        node = self.tip_index_map.get(name)
        if node is None:
            raise TreeError(f"no tip named {name} in the index")
        return node

    def exists_tip(self, name: str) -> bool:
        self._require_index()
        return name in self.tip_index_map

    def nb_tips(self) -> int:
        """Number of tips in the tip index."""
        self._require_index()
        return len(self.tip_index_map)

    def all_tip_names(self) -> list[str]:
        """Names of the tips in pre-order; stops at the root if it is a tip."""
        if self.root.is_tip():
            return [self.root.name]
        return [n.name for n in self.tips()]

    # Building ----------------------------------------------------------

    def connect_nodes(self, parent: Node, child: Node) -> Edge:
        """Join two nodes by a new edge oriented from parent to child."""
        edge = Edge(left=parent, right=child)
        parent.add_neighbor(child, edge)
        child.add_neighbor(parent, edge)
        return edge

    def graft_tip_on_edge(self, node: Node, edge: Edge) -> tuple[Edge, Edge, Node]:
        """Graft ``node`` in the middle of ``edge``.

        Returns the edge to the grafted node, the new lower half of the split
        edge, and the new internal node.
        """
        new_node = Node()
        new_edge = Edge()
        lnode, rnode = edge.left, edge.right
        l_index = lnode.edge_index(edge)
        r_index = rnode.edge_index(edge)

        new_edge.length = 1.0
        new_edge.left = new_node
        new_edge.right = node
        new_node.add_neighbor(node, new_edge)
        node.add_neighbor(new_node, new_edge)

        edge.right = new_node
        new_node.add_neighbor(lnode, edge)
        lnode.neighbors[l_index] = new_node

        lower = Edge(length=edge.length / 2, left=new_node, right=rnode)
        edge.length = edge.length / 2
        new_node.add_neighbor(rnode, lower)
        rnode.neighbors[r_index] = new_node
        rnode.edges[r_index] = lower
        return new_edge, lower, new_node

    # Bitsets -----------------------------------------------------------

    def clear_bitsets(self) -> None:
        """Give every edge an empty bitset sized to the tip index."""
        length = len(self.tip_index_map)
        if length == 0:
            raise TreeError("no tips in the index, tip name index is not initialized")
        for _, _, edge in self.pre_order():
            if edge is not None:
                edge.bitset = Bitset(length)
                edge.hashcode_left = 0
                edge.hashcode_right = 0

    def update_bitsets(self) -> None:
        """Set in each edge's bitset the tips found below it."""
        for root_edge in self.root.edges:
            path: list[Edge] = []
            stack = [(root_edge, 0)]
            while stack:
                edge, level = stack.pop()
                del path[level:]
                path.append(edge)
                if edge.bitset is None:
                    raise TreeError("bitsets have not been initialized")
                edge.bitset.clear_all()
                right = edge.right
                if len(right.neighbors) == 1:
                    for on_path in path:
                        on_path.bitset.set(right.tip_id)
                else:
                    children = [c for c in right.edges if c.left is right]
                    stack.extend((c, level + 1) for c in reversed(children))

    def reinit_indexes(self) -> None:
        """Rebuild tip index, bitsets, edge hashes and depths."""
        self.update_tip_index()
        self.clear_bitsets()
        self.update_bitsets()
        compute_edge_hashes(self.root)
        self.compute_depths()

    def reinit_internal_indexes(self) -> None:
        """Rebuild bitsets, edge hashes and depths, keeping the tip index."""
        with suppress(TreeError):
            self.clear_bitsets()
        with suppress(TreeError):
            self.update_bitsets()
        compute_edge_hashes(self.root)
        self.compute_depths()

    # Comparison --------------------------------------------------------

    def compare_tip_indexes(self, other: "Tree") -> None:
        """Raise unless both tip indexes are set and hold the same names."""
        if (
            not self.tip_index_map
            or not other.tip_index_map
            or len(self.tip_index_map) != len(other.tip_index_map)
        ):
            raise TreeError(
                "tip name index is not initialized or trees do not have "
                "the same number of tips"
            )
        if any(name not in other.tip_index_map for name in self.tip_index_map):
            raise TreeError("trees do not have the same tip names")

    def common_edges(self, other: "Tree", tip_edges: bool) -> tuple[int, int]:
        """Edges specific to this tree and edges in common with ``other``."""
        self.compare_tip_indexes(other)
        return common_edges(self.edges(), other.edges(), tip_edges)

    # Rerooting ---------------------------------------------------------

    def reorder_edges(self, node: Node, prev: Optional[Node]) -> list[Edge]:
        """Orient edges away from ``node``; returns the edges that were reversed."""
        reversed_edges: list[Edge] = []
        stack = [(node, prev, iter(node.edges))]
        while stack:
            cur, before, pending = stack[-1]
            for edge in pending:
                if edge.right is not before and edge.left is not before:
                    if edge.right is cur:
                        edge.inverse()
                        reversed_edges.append(edge)
                    nxt = edge.right
                    stack.append((nxt, cur, iter(nxt.edges)))
                    break
            else:
                stack.pop()
        return reversed_edges

    def reroot(self, node: Node) -> None:
        """Make ``node`` the root, reorienting edges."""
        if len(node.neighbors) < 2:
            raise TreeError("cannot reroot on a tip node")
        if not any(n is node for n in self.nodes()):
            raise TreeError("the node is not part of the tree")
        self.root = node
        self.reorder_edges(node, None)
        self.reinit_internal_indexes()

    def reroot_first(self) -> None:
        """Reroot on the first node (pre-order) having three neighbors."""
        for node in self.nodes():
            if len(node.neighbors) == 3:
                self.reroot(node)
                return
        raise TreeError("no nodes with 3 neighbors have been found for rerooting")

    # Depths and distances ---------------------------------------------

    def compute_depths(self) -> None:
        """Set each node's depth: edges on the path to its closest tip."""
        if self.is_rooted():
            order = list(self.pre_order())
            for cur, prev, _ in order:
                cur.root_depth = 0 if prev is None else prev.root_depth + 1
            for cur, prev, _ in reversed(order):
                if cur.is_tip():
                    cur.depth = 0
                    continue
                depths = [n.depth for n in cur.neighbors if n is not prev]
                cur.depth = (min(depths) if depths else NIL_DEPTH) + 1
            return
        nodes = self.tips()
        level = 0
        changed = 1
        while changed:
            changed = 0
            for node in nodes:
                if node.depth == NIL_DEPTH:
                    node.depth = level
                    changed += 1
            nodes = [
                nxt
                for node in nodes
                for nxt in node.neighbors
                if nxt.depth == NIL_DEPTH
            ]
            level += 1

    def node_root_distance(self, only_tips: bool) -> list[float]:
        """Distances from the root to nodes (or tips), in pre-order."""
        distances: dict[int, float] = {}
        result: list[float] = []
        for cur, prev, edge in self.pre_order():
            dist = 0.0 if prev is None else distances[id(prev)] + edge.length
            distances[id(cur)] = dist
            if not only_tips or cur.is_tip():
                result.append(dist)
        return result

    # Copies ------------------------------------------------------------

    def _copy_below(self, target: "Tree", copy_root: Node, edges: list[Edge]) -> None:
        stack = [(copy_root, e) for e in reversed(edges)]
        while stack:
            copy_parent, edge = stack.pop()
            child = edge.right
            copy_child = _copy_node(child)
            copy_edge = target.connect_nodes(copy_parent, copy_child)
            _copy_edge_attributes(edge, copy_edge)
            stack.extend(
                (copy_child, e) for e in reversed(child.edges) if e is not edge
            )

    def clone(self) -> "Tree":
        """Deep copy of the tree."""
        copy = Tree(_copy_node(self.root))
        self._copy_below(copy, copy.root, list(self.root.edges))
        with suppress(TreeError):
            copy.update_tip_index()
        return copy

    def subtree(self, node: Node) -> "Tree":
        """Copy of the clade below ``node``, rooted at a copy of it."""
        sub = Tree(_copy_node(node))
        self._copy_below(sub, sub.root, [e for e in node.edges if e.left is node])
        with suppress(TreeError):
            sub.reinit_indexes()
        return sub

    def merge(self, other: "Tree") -> None:
        """Join two rooted trees with disjoint tips under a new root."""
        if not self.is_rooted() or not other.is_rooted():
            raise TreeError("one of the two trees (or both) is not rooted")
        if not self.tip_index_map or not other.tip_index_map:
            raise TreeError("no tips in the index, tip name index is not initialized")
        if any(name in other.tip_index_map for name in self.tip_index_map):
            raise TreeError("trees should not have common tip names")
        new_root = Node()
        self.connect_nodes(new_root, self.root)
        self.connect_nodes(new_root, other.root)
        self.root = new_root
        self.reinit_indexes()

    # Deepest edge ------------------------------------------------------

    def _deepest(self) -> tuple[Optional[Edge], int, int]:
        for position, edge in enumerate(self.edges()):
            edge.id = position
        numtips = len(self.tips())
        results: dict[int, tuple[Optional[Edge], int, int, int, int]] = {}
        order = list(self.pre_order())
        for cur, prev, edge in reversed(order):
            if cur.is_tip():
                results[id(cur)] = (edge, 1, -1, 1, 1)
                continue
            max_edge: Optional[Edge] = None
            left = right = max_depth = cur_tips = 0
            for child in cur.neighbors:
                if child is prev:
                    continue
                c_edge, c_left, c_right, c_depth, c_tips = results[id(child)]
                if c_depth > max_depth:
                    max_depth, max_edge, left, right = c_depth, c_edge, c_left, c_right
                cur_tips += c_tips
            light = min(numtips - cur_tips, cur_tips)
            if light > max_depth:
                max_depth, max_edge = light, edge
                left, right = numtips - cur_tips, cur_tips
            results[id(cur)] = (max_edge, left, right, max_depth, cur_tips)
        max_edge, left, right, _, _ = results[id(self.root)]
        return max_edge, left, right

    def deepest_edge(self) -> Optional[Edge]:
        """Edge with the most tips on its lighter side."""
        return self._deepest()[0]

    def deepest_node(self) -> Node:
        """Node on the heavier side of the deepest edge."""
        edge, left, right = self._deepest()
        return edge.left if left > right else edge.right

    # Checks ------------------------------------------------------------

    def check_tree(self) -> bool:
        """Whether neighbor lists and edge orientations are consistent."""
        stack: list[tuple[Node, Optional[Node]]] = [(self.root, None)]
        while stack:
            cur, prev = stack.pop()
            for neighbor, edge in zip(cur.neighbors, cur.edges):
                if neighbor is not prev:
                    if edge.left is not cur or edge.right is not neighbor:
                        return False
                    stack.append((neighbor, cur))
                elif edge.right is not cur or edge.left is not prev:
                    return False
        return True

    def check_tree_post_order(self) -> None:
        """Raise if an edge is not oriented from parent to child."""
        for cur, prev, edge in self.post_order():
            if prev is not None and (edge.left is not prev or edge.right is not cur):
                raise TreeError(
                    "edge is not oriented as expected or does not connect right "
                    f"nodes : {prev.name} | {edge.left.name} - {edge.right.name} "
                    f"| {cur.name}"
                )