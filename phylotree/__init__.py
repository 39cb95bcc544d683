"""Phylogenetic tree structures, bipartitions, tree editing and relabelling."""

__version__ = "0.1.0"

__all__ = ["model", "tipbag", "bipartition", "nodeindex", "tree", "edit", "labels"]