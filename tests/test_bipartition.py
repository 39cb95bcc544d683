import math

import pytest

from phylotree.bipartition import (
    Bitset,
    compute_edge_hashes,
    dump_bitset,
    find_edge,
    hash_code,
    locality,
    neighbor_edges,
    same_bipartition,
    stats_string,
    tax_hash,
    topo_depth,
)
from phylotree.model import Edge, Node, TreeError


def link(parent, child, length=-1.0):
    edge = Edge(left=parent, right=child, length=length)
    parent.add_neighbor(child, edge)
    child.add_neighbor(parent, edge)
    return edge


def bits(indices, length=4):
    bitset = Bitset(length)
    for i in indices:
        bitset.set(i)
    return bitset


def build(inner_names, outer_names):
    """Unrooted tree ((i1,i2),o1,o2) with the given tip names."""
    root = Node()
    inner = Node()
    tips = {name: Node(name=name) for name in inner_names + outer_names}
    edges = {"inner": link(root, inner, 0.5)}
    for name in outer_names:
        edges[name] = link(root, tips[name], 1.0)
    for name in inner_names:
        edges[name] = link(inner, tips[name], 2.0)
    return root, inner, tips, edges


TIP_INDEX = {"A": 0, "B": 1, "C": 2, "D": 3}


@pytest.fixture
def tree1():
    root, inner, tips, edges = build(["A", "B"], ["C", "D"])
    compute_edge_hashes(root)
    edges["inner"].bitset = bits([0, 1])
    for name in "ABCD":
        edges[name].bitset = bits([TIP_INDEX[name]])
    return root, inner, tips, edges


@pytest.fixture
def tree2():
    root, inner, tips, edges = build(["C", "D"], ["A", "B"])
    compute_edge_hashes(root)
    edges["inner"].bitset = bits([2, 3])
    for name in "ABCD":
        edges[name].bitset = bits([TIP_INDEX[name]])
    return root, inner, tips, edges


def test_bitset_set_test_count():
    bitset = Bitset(5)
    bitset.set(1)
    bitset.set(3)
    assert bitset.test(1) and bitset.test(3)
    assert not bitset.test(0)
    assert not bitset.test(10)
    assert bitset.count() == 2
    bitset.clear_all()
    assert bitset.none()


def test_bitset_grows_on_set():
    bitset = Bitset(2)
    bitset.set(6)
    assert bitset.length == 7
    assert bitset.test(6)


def test_bitset_equal_or_complement():
    assert bits([0, 1]).equal_or_complement(bits([2, 3]))
    assert bits([0, 1]).equal_or_complement(bits([0, 1]))
    assert not bits([0, 2]).equal_or_complement(bits([2, 3]))
    assert not bits([0, 1], 4).equal_or_complement(bits([0, 1], 5))


def test_bitset_dump_length_matches():
    bitset = bits([0, 2], 6)
    text = bitset.dump()
    assert len(text) == 6
    assert text[-1] == "1" and text[-3] == "1"
    assert text.count("1") == bitset.count()


def test_tax_hash_fnv1a_vectors():
    assert tax_hash("") == 0xCBF29CE484222325
    assert tax_hash("a") == 0xAF63DC4C8601EC8C


def test_compute_edge_hashes_counts(tree1):
    _, _, _, edges = tree1
    inner = edges["inner"]
    assert inner.ntax_right == 2
    assert inner.ntax_left == 2
    assert edges["A"].ntax_right == 1
    assert edges["A"].ntax_left == 3
    assert edges["C"].ntax_left == 3


def test_tip_edge_hash_is_tip_name_hash(tree1):
    _, _, _, edges = tree1
    assert hash_code(edges["C"]) == tax_hash("C")
    assert hash_code(edges["A"]) == tax_hash("A")


def test_same_split_has_same_hash(tree1, tree2):
    e1 = tree1[3]["inner"]
    e2 = tree2[3]["inner"]
    assert hash_code(e1) == hash_code(e2)
    assert same_bipartition(e1, e2)


def test_different_split_not_same(tree1, tree2):
    assert not same_bipartition(tree1[3]["inner"], tree2[3]["A"])


def test_uncomputed_hash_is_zero():
    edge = Edge()
    assert hash_code(edge) == 0


def test_topo_depth(tree1):
    edges = tree1[3]
    assert topo_depth(edges["inner"]) == 2
    assert topo_depth(edges["D"]) == 1


def test_topo_depth_uncomputed_raises():
    with pytest.raises(TreeError):
        topo_depth(Edge())


def test_dump_bitset(tree1):
    assert dump_bitset(Edge()) == "nil"
    assert dump_bitset(tree1[3]["inner"]) == "0011."


def test_find_edge(tree1, tree2):
    e1 = tree1[3]["inner"]
    assert find_edge(e1, list(tree2[3].values())) is e1
    assert find_edge(e1, [tree2[3]["A"], tree2[3]["C"]]) is None


def test_find_edge_uninitialized_raises(tree1):
    with pytest.raises(TreeError):
        find_edge(Edge(), tree1[3].values())
    empty = Edge(bitset=Bitset(4))
    with pytest.raises(TreeError):
        find_edge(empty, tree1[3].values())


def test_neighbor_edges(tree1):
    edges = tree1[3]
    found = neighbor_edges(edges["inner"], 1)
    assert len(found) == 4
    assert {id(e) for e in found} == {id(edges[n]) for n in "ABCD"}
    assert neighbor_edges(edges["inner"], 0) == []


def test_neighbor_edges_of_tip_edge(tree1):
    edges = tree1[3]
    found = neighbor_edges(edges["A"], 1)
    assert {id(e) for e in found} == {id(edges["B"]), id(edges["inner"])}


def test_locality(tree1):
    edges = tree1[3]
    edges["inner"].support = 0.9
    edges["A"].support = 0.5
    edges["C"].support = 0.95
    mean, lo, hi, hx, hy = locality(edges["inner"], 1, 0.8)
    assert hy is True
    assert hx is True
    assert lo <= mean <= hi
    assert hi == pytest.approx(abs(0.9 - 0.5))


def test_locality_without_supported_neighbors(tree1):
    edges = tree1[3]
    mean, lo, hi, hx, hy = locality(edges["inner"], 1, 0.5)
    assert math.isnan(mean)
    assert hx is False and hy is False
    assert lo == 0.0 and hi == 0.0


def test_stats_string(tree1):
    root, inner, tips, edges = tree1
    for node in [root, inner, *tips.values()]:
        node.depth = 0 if node.is_tip() else 1
    tips["A"].root_depth = 2
    tips["A"].add_comment("x")
    fields = stats_string(edges["A"], False).split("\t")
    assert fields == ["2", "N/A", "true", "0", "1", "2", "A"]
    full = stats_string(edges["A"], True).split("\t")
    assert full[7:] == ["[]", "", "[x]", "[]"]


def test_stats_string_requires_depths(tree1):
    with pytest.raises(TreeError):
        stats_string(tree1[3]["inner"], False)