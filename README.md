# phylotree

A small library for building, inspecting and editing phylogenetic trees in
Python. It uses only the standard library.

Trees are made of nodes joined by oriented edges: the parent node is on the
`left` of an edge and the child on its `right`. Unset branch lengths,
supports and p-values are marked with `-1`.

## Modules

- `phylotree.model`: `Node` and `Edge` (names, comments, lengths, supports,
  p-values), Newick text of a subtree (`Node.newick()`), clade traversals
  (`Node.pre_order()`, `Node.post_order()`), and `TreeError`, the exception
  raised throughout the package.
- `phylotree.tree`: `Tree`, with edge, tip and node listings, pre- and
  post-order traversals, Newick and Nexus output (`Tree.newick()`,
  `Tree.nexus()`), the tip name index (`Tree.update_tip_index()`,
  `Tree.tip_index()`, `Tree.tip_node()`), bipartition bitsets and depths
  (`Tree.reinit_indexes()`), comparison of trees (`Tree.common_edges()`,
  `Tree.compare_tip_indexes()`), rerooting, grafting a tip on an edge,
  cloning, subtrees, merging two rooted trees, the deepest edge and node, and
  consistency checks.
- `phylotree.bipartition`: `Bitset`, FNV-1a taxon hashes, edge hash codes,
  `same_bipartition`, `find_edge`, `topo_depth`, `neighbor_edges`,
  `locality` and `stats_string`.
- `phylotree.nodeindex`: `NodeIndex`, with `named_node_index` (unique names
  required) and `all_node_index`.
- `phylotree.tipbag`: `TipBag`, a name-keyed set of tips.
- `phylotree.edit`: `remove_tip`, `remove_tips`, `unroot`,
  `insert_identical_tip(s)`, `graft_tree_on_tip`, `cut_edges_max_length`,
  `shuffle_tips`, `rotate_internal_nodes`, `sort_neighbors_by_tips`.
- `phylotree.labels`: `rename`, `rename_auto`, `rename_regexp`,
  `remove_quotes`, `add_quotes`, clearing of supports, p-values, lengths and
  comments, and scaling, adding to or rounding lengths and supports.

## Installation

```
pip install .
```

## Example

```python
from phylotree.model import Node
from phylotree.tree import Tree

tree = Tree()
root = Node()
tree.root = root
for name in ("A", "B", "C"):
    edge = tree.connect_nodes(root, Node(name=name))
    edge.length = 0.1
tree.reinit_indexes()

print(tree.newick())         # (A:0.1,B:0.1,C:0.1);
print(tree.all_tip_names())  # ['A', 'B', 'C']
```

## What it does not do

- It does not read trees: there is no Newick or Nexus parser, so trees are
  built with `Node` and `Tree.connect_nodes()`.
- It has no functions to collapse short or weakly supported branches, to
  resolve multifurcations, or to remove single-child nodes.
- It has no command-line program.

## Running the tests

```
pip install .[test]
pytest
```