"""Renaming of nodes and bulk edits of supports, lengths and comments."""

from __future__ import annotations

import math
import re
from typing import Mapping, MutableMapping, Optional

from phylotree.model import NIL_LENGTH, NIL_PVALUE, NIL_SUPPORT, Edge, Node, TreeError
from phylotree.nodeindex import named_node_index
from phylotree.tree import Tree

_TEMPLATE = re.compile(r"\$(?:\$|\{([A-Za-z0-9_]+)\}|([A-Za-z0-9_]+))")


def _selected(node: Node, internals: bool, tips: bool) -> bool:
    return (tips and node.is_tip()) or (internals and not node.is_tip())


def _edge_selected(edge: Edge, internal: bool, external: bool) -> bool:
    return (edge.right.is_tip() and external) or (not edge.right.is_tip() and internal)


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _expand(template: str, match: re.Match) -> str:
    """Expand a replacement using ``$1``, ``${name}`` and ``$$`` references."""

    def substitute(ref: re.Match) -> str:
        if ref.group(0) == "$$":
            return "$"
        name = ref.group(1) or ref.group(2)
        if name.isdigit():
            index = int(name)
            if index > match.re.groups:
                return ""
            return match.group(index) or ""
        if name not in match.re.groupindex:
            return ""
        return match.group(name) or ""

    return _TEMPLATE.sub(substitute, template)


def rename(tree: Tree, name_map: Mapping[str, str]) -> None:
    """Rename nodes by name; names absent from the tree are ignored."""
    index = named_node_index(tree.nodes())
    for name, new_name in name_map.items():
        node = index.get(name)
        if node is not None:
            node.name = new_name
    tree.update_tip_index()


def rename_auto(
    tree: Tree,
    internals: bool,
    tips: bool,
    length: int,
    start: int = 0,
    name_map: Optional[MutableMapping[str, str]] = None,
) -> int:
    """Give nodes generated names such as T0001 (tips) or N0001 (internal nodes).

    Names already in ``name_map`` are reused; new names are numbered from
    ``start``. Unnamed internal nodes are first named after their position.
    Returns the next free number.
    """
    if name_map is None:
        name_map = {}
    current = start
    width = length - 1
    for position, node in enumerate(tree.nodes()):
        if not _selected(node, internals, tips):
            continue
        prefix = "T"
        if not node.is_tip():
            prefix = "N"
            if node.name == "":
                node.name = str(position)
        new_name = name_map.get(node.name)
        if new_name is None:
            digits = format(current, f"0{width}d") if width > 0 else str(current)
            new_name = prefix + digits
            if len(new_name) != length:
                raise TreeError(
                    f"id length {length} does not allow to generate as much ids: "
                    f"{current} ({new_name})"
                )
            name_map[node.name] = new_name
            current += 1
        node.name = new_name
    tree.update_tip_index()
    return current


def rename_regexp(
    tree: Tree,
    internals: bool,
    tips: bool,
    pattern: str,
    replacement: str,
    name_map: Optional[MutableMapping[str, str]] = None,
) -> None:
    """Replace every match of ``pattern`` in node names.

    The replacement may refer to groups as ``$1``, ``${1}`` or ``${name}``;
    ``$$`` stands for a dollar sign.
    """
    if name_map is None:
        name_map = {}
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise TreeError(f"malformed regular expression: {pattern}") from exc
    for node in tree.nodes():
        if _selected(node, internals, tips):
            new_name = regex.sub(lambda m: _expand(replacement, m), node.name)
            name_map[node.name] = new_name
            node.name = new_name
    tree.update_tip_index()


def _strip_quotes(name: str) -> str:
    first = 1 if name[0] in "'\"" else 0
    last = len(name) - 1 if name[-1] in "'\"" else len(name)
    return name[first:last]


def remove_quotes(
    tree: Tree,
    internals: bool,
    tips: bool,
    name_map: Optional[MutableMapping[str, str]] = None,
) -> None:
    """Remove single or double quotes around node names."""
    if name_map is None:
        name_map = {}
    for node in tree.nodes():
        if _selected(node, internals, tips) and node.name:
            name = node.name
            new_name = _strip_quotes(name)
            node.name = new_name
            name_map[name] = new_name
    tree.update_tip_index()


def add_quotes(
    tree: Tree,
    internals: bool,
    tips: bool,
    name_map: Optional[MutableMapping[str, str]] = None,
) -> None:
    """Put single quotes around node names, replacing existing quotes."""
    if name_map is None:
        name_map = {}
    for node in tree.nodes():
        if _selected(node, internals, tips) and node.name:
            name = node.name
            new_name = "'" + _strip_quotes(name) + "'"
            node.name = new_name
            name_map[name] = new_name
    tree.update_tip_index()


def clear_supports(tree: Tree) -> None:
    """Unset supports and p-values of all branches."""
    for edge in tree.edges():
        edge.support = NIL_SUPPORT
        edge.pvalue = NIL_PVALUE


def clear_pvalues(tree: Tree) -> None:
    """Unset p-values of all branches."""
    for edge in tree.edges():
        edge.pvalue = NIL_PVALUE


def clear_lengths(tree: Tree, internal: bool = True, external: bool = True) -> None:
    """Unset lengths of internal and/or external branches."""
    for edge in tree.edges():
        if _edge_selected(edge, internal, external):
            edge.length = NIL_LENGTH


def clear_comments(tree: Tree) -> None:
    """Remove comments of all nodes and edges."""
    clear_node_comments(tree)
    clear_edge_comments(tree)


def clear_node_comments(tree: Tree) -> None:
    for node in tree.nodes():
        node.clear_comments()


def clear_edge_comments(tree: Tree) -> None:
    for edge in tree.edges():
        edge.clear_comments()


def clear_tip_comments(tree: Tree) -> None:
    for tip in tree.tips():
        tip.clear_comments()


def clear_terminal_edge_comments(tree: Tree) -> None:
    for edge in tree.edges():
        if edge.right.is_tip():
            edge.clear_comments()


def scale_supports(tree: Tree, factor: float) -> None:
    """Multiply set supports by ``factor``, truncated to 6 decimals."""
    for edge in tree.edges():
        if edge.support != NIL_SUPPORT:
            edge.support = int(1000000 * (edge.support * factor)) / 1000000


def round_supports(tree: Tree, precision: int) -> None:
    """Round set supports to ``precision`` decimals (at most 15)."""
    precision = min(precision, 15)
    scale = 10.0**precision
    for edge in tree.edges():
        if edge.support != NIL_SUPPORT:
            edge.support = _round_half_away(scale * edge.support) / scale


def scale_lengths(
    tree: Tree, factor: float, internal: bool = True, external: bool = True
) -> None:
    """Multiply set lengths of the chosen branches by ``factor``."""
    for edge in tree.edges():
        if edge.length != NIL_LENGTH and _edge_selected(edge, internal, external):
            edge.length = edge.length * factor


def add_length(
    tree: Tree, length: float, internal: bool = True, external: bool = True
) -> None:
    """Add ``length`` to the chosen branches; unset lengths become ``length``."""
    for edge in tree.edges():
        if _edge_selected(edge, internal, external):
            if edge.length != NIL_LENGTH:
                edge.length = edge.length + length
            else:
                edge.length = length


def round_lengths(
    tree: Tree, precision: int, internal: bool = True, external: bool = True
) -> None:
    """Round set lengths of the chosen branches to ``precision`` decimals (at most 15)."""
    precision = min(precision, 15)
    scale = 10.0**precision
    for edge in tree.edges():
        if edge.length != NIL_LENGTH and _edge_selected(edge, internal, external):
            edge.length = _round_half_away(scale * edge.length) / scale