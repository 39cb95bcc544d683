import pytest

from phylotree.model import Node, TreeError
from phylotree.nodeindex import NodeIndex, all_node_index, named_node_index


def test_named_index_skips_unnamed():
    a, b, unnamed = Node(name="A"), Node(name="B"), Node()
    index = named_node_index([a, unnamed, b])
    assert len(index) == 2
    assert index.get("A") is a
    assert index.get("B") is b
    assert index.get("") is None
    assert "" not in index


def test_named_index_rejects_duplicates():
    with pytest.raises(TreeError):
        named_node_index([Node(name="A"), Node(name="A")])


def test_all_index_includes_unnamed_and_overwrites():
    first, second, unnamed = Node(name="A"), Node(name="A"), Node()
    index = all_node_index([first, unnamed, second])
    assert index.get("A") is second
    assert index.get("") is unnamed
    assert sorted(index) == ["", "A"]


def test_add_replaces():
    index = NodeIndex()
    old, new = Node(name="X"), Node(name="X")
    index.add(old)
    index.add(new)
    assert index.get("X") is new
    assert len(index) == 1


def test_get_missing_returns_none():
    index = NodeIndex()
    assert index.get("missing") is None
    assert "missing" not in index