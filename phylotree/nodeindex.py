"""Lookup of tree nodes by name."""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

from phylotree.model import Node, TreeError


class NodeIndex:
    """Maps node names to nodes."""

    def __init__(self) -> None:
        self._index: dict[str, Node] = {}

    def get(self, name: str) -> Optional[Node]:
        """The node with this name, or None."""
        return self._index.get(name)

    def add(self, node: Node) -> None:
        """Index a node, replacing any node already indexed under its name."""
        self._index[node.name] = node

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)


def named_node_index(nodes: Iterable[Node]) -> NodeIndex:
    """Index the nodes that have a name; names must be unique."""
    index = NodeIndex()
    for node in nodes:
        if node.name == "":
            continue
        if node.name in index:
            raise TreeError(
                "tree contains several nodes with the same name: " + node.name
            )
        index.add(node)
    return index


def all_node_index(nodes: Iterable[Node]) -> NodeIndex:
    """Index every node by name; later nodes win on a shared name."""
    index = NodeIndex()
    for node in nodes:
        index.add(node)
    return index