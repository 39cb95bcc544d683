"""Structural edits of trees: removing, inserting and grafting tips, and reordering."""

from __future__ import annotations

import random
from contextlib import suppress
from typing import Iterable, Optional

from phylotree.model import NIL_LENGTH, NIL_SUPPORT, Edge, Node, TreeError
from phylotree.nodeindex import named_node_index
from phylotree.tipbag import TipBag
from phylotree.tree import Tree


def _delete_node(node: Node) -> None:
    """Detach a node and blank out every edge it holds."""
    for edge in node.edges:
        edge.left = None
        edge.right = None
        edge.bitset = None
    node.neighbors = []
    node.edges = []


def _unconnect_node(node: Node) -> None:
    """Detach a node without touching its edges."""
    node.neighbors = []
    node.edges = []


def remove_tip(tree: Tree, tip: Node) -> None:
    """Remove one tip, also removing internal nodes left with too few neighbors.

    When an internal node is left with two neighbors, it is removed and its
    neighbors are joined by an edge whose length is the sum of both lengths
    and whose support is the larger of both supports.
    """
    if len(tip.neighbors) != 1:
        raise TreeError("cannot remove node, it is not a tip")
    internal = tip.edges[0].left
    tip.neighbors = []
    internal.remove_neighbor(tip)
    _delete_node(tip)

    if len(internal.neighbors) == 1:
        while tree.root is not internal and len(internal.neighbors) == 1:
            internal.neighbors = []
            internal_parent = internal.edges[0].left
            internal_parent.remove_neighbor(internal)
            _delete_node(internal)
            internal = internal_parent
        if tree.root is internal and len(internal.neighbors) == 1:
            tree.root = internal.neighbors[0]
            tree.root.remove_neighbor(internal)
            _delete_node(internal)
            return

    if len(internal.neighbors) != 2:
        return

    n1, n2 = internal.neighbors
    b1, b2 = internal.edges
    length1, length2 = b1.length, b2.length
    sup1, sup2 = b1.support, b2.support
    dir1 = b1.left is n1
    dir2 = b2.right is n2
    n1.remove_neighbor(internal)
    n2.remove_neighbor(internal)

    if dir1 and dir2:
        edge = tree.connect_nodes(n1, n2)
    elif not dir1 and not dir2:
        edge = tree.connect_nodes(n2, n1)
    elif not dir1 and dir2:
        if tree.root is not internal:
            raise TreeError(
                "the tree root is not the internal node, but it should be, "
                f"while removing tip {tip.name}"
            )
        if len(n1.neighbors) > 1:
            edge = tree.connect_nodes(n1, n2)
            tree.root = n1
        elif len(n2.neighbors) > 1:
            edge = tree.connect_nodes(n2, n1)
            tree.root = n2
        else:
            raise TreeError(
                f"after removing the tip {tip.name} connected to the root, no new "
                "node could be found to set as a root (the children of the root "
                "are either tips or single nodes)"
            )
    else:
        raise TreeError(
            "branches of internal node are not oriented as they should be "
            f"while removing tip {tip.name}"
        )

    if length1 != NIL_LENGTH or length2 != NIL_LENGTH:
        edge.length = max(0.0, length1) + max(0.0, length2)
    if (
        (sup1 != NIL_SUPPORT or sup2 != NIL_SUPPORT)
        and len(n1.neighbors) > 1
        and len(n2.neighbors) > 1
    ):
        edge.support = max(sup1, sup2)
    _delete_node(internal)


def remove_tips(tree: Tree, names: Iterable[str], revert: bool = False) -> None:
    """Remove the named tips, or, with ``revert``, keep only them."""
    wanted = set(names)
    for tip in tree.tips():
        if len(tip.neighbors) != 1:
            raise TreeError(f"the node named {tip.name} is not a tip")
        if (tip.name in wanted) != revert:
            remove_tip(tree, tip)
    tree.reinit_internal_indexes()


def unroot(tree: Tree) -> None:
    """Remove a bifurcating root, rooting on one of its non-tip children."""
    if not tree.is_rooted():
        return
    root = tree.root
    n1, n2 = root.neighbors
    e1, e2 = root.edges
    n1_tip = n1.is_tip()
    n1.remove_neighbor(root)
    n2.remove_neighbor(root)

    if n1_tip:
        joined = tree.connect_nodes(n2, n1)
        tree.root = n2
    else:
        joined = tree.connect_nodes(n1, n2)
        tree.root = n1

    if e1.length != NIL_LENGTH or e2.length != NIL_LENGTH:
        joined.length = max(0.0, e1.length) + max(0.0, e2.length)
    if (
        not n1.is_tip()
        and not n2.is_tip()
        and (e1.support != NIL_SUPPORT or e2.support != NIL_SUPPORT)
    ):
        joined.support = max(max(0.0, e1.support), max(0.0, e2.support))
    _delete_node(root)
    with suppress(TreeError):
        tree.reinit_indexes()


def insert_identical_tips(tree: Tree, groups: Iterable[Iterable[str]]) -> None:
    """Add tips next to identical tips already in the tree.

    Each group must hold exactly one name already present in the tree; the
    other names are added next to it on zero-length branches.
    """
    index = named_node_index(tree.nodes())
    for group in groups:
        new_names: list[str] = []
        old_name: Optional[str] = None
        last = ""
        for name in group:
            last = name
            exists = tree.exists_tip(name)
            if exists and old_name is None:
                old_name = name
            elif exists:
                raise TreeError(
                    "several already existing tips are present in an identical group"
                )
            else:
                new_names.append(name)
        if old_name is None:
            raise TreeError(
                f"no existing tip is present in the given identical group: {last}"
            )
        old = index.get(old_name)
        if new_names and old is not None:
            for name in new_names:
                index.add(insert_identical_tip(tree, old, name))
    tree.reinit_indexes()


def insert_identical_tip(tree: Tree, tip: Node, new_name: str) -> Node:
    """Add a tip named ``new_name`` beside ``tip`` on zero-length branches.

    If the branch above ``tip`` already has length 0, the new tip is attached
    to the same parent (which may create a polytomy); otherwise a new internal
    node is inserted. Returns the new tip. Bitsets and depths are not updated.
    """
    if not tip.is_tip():
        raise TreeError("the node to add the new tip to is not a tip")
    if tree.exists_tip(new_name):
        raise TreeError(f"the tip to add to {tip.name} is already present in the tree")
    parent_edge = tip.parent_edge()
    parent = tip.parent()
    new_tip = Node(name=new_name)
    if parent_edge.length == 0.0:
        tree.connect_nodes(parent, new_tip).length = 0.0
    else:
        e_index = parent.edge_index(parent_edge)
        n_index = tip.node_index(parent)
        new_internal = Node()
        tree.connect_nodes(new_internal, new_tip).length = 0.0

        lower = Edge(length=0.0)
        parent_edge.right = new_internal
        new_internal.add_neighbor(parent, parent_edge)
        new_internal.add_neighbor(tip, lower)
        parent.neighbors[e_index] = new_internal

        lower.left = new_internal
        lower.right = tip
        tip.neighbors[n_index] = new_internal
        tip.edges[n_index] = lower
    tree.tip_index_map[new_name] = new_tip
    new_tip.tip_id = len(tree.tip_index_map)
    return new_tip


def graft_tree_on_tip(tree: Tree, tip_name: str, graft: Tree) -> None:
    """Replace the named tip by the root of ``graft``."""
    tip = tree.tip_node(tip_name)
    graft_root = graft.root
    parent_edge = tip.parent_edge()
    parent = parent_edge.left
    index = parent.node_index(tip)
    parent_edge.right = graft_root
    parent.neighbors[index] = graft_root
    graft_root.add_neighbor(parent, parent_edge)
    with suppress(TreeError):
        tree.update_tip_index()


def cut_edges_max_length(tree: Tree, max_length: float) -> list[TipBag]:
    """Tips of the connected components left when long edges are cut.

    Edges with length >= ``max_length`` are considered removed; components
    without tips are skipped. The tree itself is not modified.
    """
    edges = tree.edges()
    for position, edge in enumerate(edges):
        edge.id = position
    visited = [False] * len(edges)
    bags: list[TipBag] = []

    def gather(bag: TipBag, start: Node, prev: Node) -> None:
        stack: list[tuple[Node, Node]] = [(start, prev)]
        while stack:
            cur, before = stack.pop()
            if cur.is_tip():
                bag.add_tip(cur)
            for neighbor, branch in zip(cur.neighbors, cur.edges):
                if neighbor is not before and branch.length < max_length:
                    visited[branch.id] = True
                    stack.append((neighbor, cur))

    for edge in edges:
        if visited[edge.id]:
            continue
        visited[edge.id] = True
        if edge.length < max_length:
            bag = TipBag()
            gather(bag, edge.left, edge.right)
            gather(bag, edge.right, edge.left)
            if len(bag) > 0:
                bags.append(bag)
        else:
            for end in (edge.left, edge.right):
                if end.is_tip():
                    bag = TipBag()
                    bag.add_tip(end)
                    bags.append(bag)
    return bags


def shuffle_tips(tree: Tree, rng: Optional[random.Random] = None) -> None:
    """Reassign tip names randomly, keeping the topology, then rebuild indexes."""
    rng = rng or random.Random()
    tips = tree.tips()
    names = tree.all_tip_names()
    rng.shuffle(names)
    for tip, name in zip(tips, names):
        tip.name = name
    with suppress(TreeError):
        tree.reinit_indexes()


def rotate_internal_nodes(tree: Tree, rng: Optional[random.Random] = None) -> None:
    """Randomly reorder the neighbors of every node; the topology is unchanged."""
    for node in tree.nodes():
        node.rotate_neighbors(rng)


def sort_neighbors_by_tips(tree: Tree) -> None:
    """Order each node's neighbors by increasing number of tips below them."""
    tip_counts: dict[int, int] = {}
    for cur, prev, _ in reversed(list(tree.pre_order())):
        keyed = []
        total = 0
        for neighbor, edge in zip(cur.neighbors, cur.edges):
            count = 0 if neighbor is prev else tip_counts[id(neighbor)]
            total += count
            keyed.append((count, neighbor, edge))
        keyed.sort(key=lambda item: item[0])
        cur.neighbors = [neighbor for _, neighbor, _ in keyed]
        cur.edges = [edge for _, _, edge in keyed]
        tip_counts[id(cur)] = 1 if cur.is_tip() else total