"""A set of tips, keyed by name."""

from __future__ import annotations

from typing import Optional

from phylotree.model import Node, TreeError


class TipBag:
    """Tips gathered by name, e.g. the tips of one connected component."""

    def __init__(self) -> None:
        self._tips: dict[str, Node] = {}

    def add_tip(self, tip: Optional[Node]) -> None:
        """Add a tip; adding the same tip twice does nothing."""
        if tip is None:
            raise TreeError("no node given to the tip bag")
        if not tip.is_tip():
            raise TreeError("internal node given to the tip bag")
        present = self._tips.get(tip.name)
        if present is None:
            self._tips[tip.name] = tip
        elif present is not tip:
            raise TreeError(
                "the tip bag already holds another tip with the same name: "
                "may be several tips have the same name?"
            )

    def clear(self) -> None:
        self._tips.clear()

    def tips(self) -> list[Node]:
        """Tips ordered by name."""
        return [self._tips[name] for name in sorted(self._tips)]

    def __len__(self) -> int:
        return len(self._tips)