import pytest

from phylotree import labels
from phylotree.model import NIL_LENGTH, NIL_PVALUE, NIL_SUPPORT, Node, TreeError
from phylotree.tree import Tree


def make_tree():
    root = Node()
    tree = Tree(root)
    x = Node(name="X")
    inner = tree.connect_nodes(root, x)
    inner.length = 0.5
    inner.support = 0.25
    inner.pvalue = 0.01
    for parent, name, length in ((x, "C", 0.1), (x, "D", 0.2), (root, "A", 0.3)):
        edge = tree.connect_nodes(parent, Node(name=name))
        edge.length = length
    tree.reinit_indexes()
    return tree


def tip_names(tree):
    return sorted(t.name for t in tree.tips())


def test_rename_changes_tip_index():
    tree = make_tree()
    labels.rename(tree, {"A": "Z", "missing": "Q"})
    assert tip_names(tree) == ["C", "D", "Z"]
    assert tree.exists_tip("Z")
    assert not tree.exists_tip("A")


def test_rename_internal_node():
    tree = make_tree()
    labels.rename(tree, {"X": "Clade"})
    assert [n.name for n in tree.nodes() if not n.is_tip() and n.name] == ["Clade"]


def test_rename_auto_tips_returns_next_id():
    tree = make_tree()
    name_map = {}
    next_id = labels.rename_auto(tree, False, True, 4, 7, name_map)
    assert next_id == 7 + 3
    assert set(name_map) == {"A", "C", "D"}
    assert sorted(name_map.values()) == tip_names(tree)
    for name in tip_names(tree):
        assert name.startswith("T") and len(name) == 4


def test_rename_auto_reuses_map():
    first = make_tree()
    second = make_tree()
    name_map = {}
    labels.rename_auto(first, False, True, 5, 0, name_map)
    next_id = labels.rename_auto(second, False, True, 5, 0, name_map)
    assert next_id == 0
    assert tip_names(first) == tip_names(second)


def test_rename_auto_internal_names_unnamed_by_position():
    tree = make_tree()
    name_map = {}
    labels.rename_auto(tree, True, False, 3, 0, name_map)
    assert "0" in name_map
    assert "X" in name_map
    internal = [n.name for n in tree.nodes() if not n.is_tip()]
    assert all(name.startswith("N") and len(name) == 3 for name in internal)


def test_rename_auto_too_short_raises():
    tree = make_tree()
    with pytest.raises(TreeError):
        labels.rename_auto(tree, False, True, 2, 10, {})


def test_rename_regexp_with_groups():
    tree = make_tree()
    name_map = {}
    labels.rename_regexp(tree, False, True, r"^(.)$", "x$1${1}", name_map)
    assert tip_names(tree) == ["xAA", "xCC", "xDD"]
    assert name_map["A"] == "xAA"


def test_rename_regexp_dollar_literal_and_unknown_group():
    tree = make_tree()
    labels.rename_regexp(tree, False, True, r"A", "$$$9", {})
    assert "$" in tip_names(tree)


def test_rename_regexp_bad_pattern():
    tree = make_tree()
    with pytest.raises(TreeError):
        labels.rename_regexp(tree, True, True, "(", "x", {})


def test_quotes_round_trip():
    tree = make_tree()
    labels.add_quotes(tree, False, True, {})
    assert all(n.startswith("'") and n.endswith("'") for n in tip_names(tree))
    labels.remove_quotes(tree, False, True, {})
    assert tip_names(tree) == ["A", "C", "D"]


def test_add_quotes_replaces_double_quotes():
    tree = make_tree()
    labels.rename(tree, {"A": '"A"'})
    name_map = {}
    labels.add_quotes(tree, False, True, name_map)
    assert name_map['"A"'] == "'A'"


def test_clear_supports_and_pvalues():
    tree = make_tree()
    labels.clear_pvalues(tree)
    assert all(e.pvalue == NIL_PVALUE for e in tree.edges())
    assert any(e.support != NIL_SUPPORT for e in tree.edges())
    labels.clear_supports(tree)
    assert all(e.support == NIL_SUPPORT for e in tree.edges())


def test_clear_lengths_internal_only():
    tree = make_tree()
    labels.clear_lengths(tree, True, False)
    for edge in tree.edges():
        if edge.right.is_tip():
            assert edge.length != NIL_LENGTH
        else:
            assert edge.length == NIL_LENGTH


def test_clear_comments_variants():
    tree = make_tree()
    for node in tree.nodes():
        node.add_comment("n")
    for edge in tree.edges():
        edge.add_comment("e")
    labels.clear_tip_comments(tree)
    assert all(t.comments == [] for t in tree.tips())
    assert any(n.comments for n in tree.nodes())
    labels.clear_terminal_edge_comments(tree)
    assert all(e.comments == [] for e in tree.edges() if e.right.is_tip())
    labels.clear_comments(tree)
    assert all(n.comments == [] for n in tree.nodes())
    assert all(e.comments == [] for e in tree.edges())


def test_scale_supports_skips_unset():
    tree = make_tree()
    labels.scale_supports(tree, 2.0)
    supports = sorted(e.support for e in tree.edges())
    assert supports[-1] == 0.5
    assert supports.count(NIL_SUPPORT) == 3


def test_round_supports_half_away_from_zero():
    tree = make_tree()
    labels.round_supports(tree, 1)
    internal = [e for e in tree.edges() if not e.right.is_tip()]
    assert internal[0].support == 0.3


def test_scale_lengths_external_only():
    tree = make_tree()
    before = {id(e): e.length for e in tree.edges()}
    labels.scale_lengths(tree, 2.0, False, True)
    for edge in tree.edges():
        if edge.right.is_tip():
            assert edge.length == before[id(edge)] * 2.0
        else:
            assert edge.length == before[id(edge)]


def test_add_length_sets_unset_lengths():
    tree = make_tree()
    labels.clear_lengths(tree)
    labels.add_length(tree, 1.5)
    assert all(e.length == 1.5 for e in tree.edges())


def test_round_lengths_and_cap():
    tree = make_tree()
    labels.round_lengths(tree, 20)
    assert sorted(e.length for e in tree.edges()) == [0.1, 0.2, 0.3, 0.5]
    labels.round_lengths(tree, 0)
    assert sorted(e.length for e in tree.edges()) == [0.0, 0.0, 0.0, 1.0]