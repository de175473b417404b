"""
Synthetic Start/End terminal nodes.

Runs after layout: a missing entry or exit point is added next to an anchor
node using the anchor's computed coordinates. The layout itself is extended,
never recomputed.
"""

import logging

from .models import Diagram, Edge, Node, Point, Shape
from .styles import EDGE_STYLE, TERMINAL_STYLE

logger = logging.getLogger(__name__)

START_ID = "auto_start"
START_EDGE_ID = "auto_start_edge"
END_ID = "auto_end"
END_EDGE_ID = "auto_end_edge"

TERMINAL_WIDTH = 100
TERMINAL_HEIGHT = 50

# Distance from the anchor's top edge to the Start node's top edge.
START_OFFSET = 120
# Gap between the anchor's bottom edge and the End node's top edge.
END_GAP = 60


class TerminalSynthesizer:
    """
    Adds Start and End nodes when the flow has no evident entry or exit.

    A flow "has a start" when any node label contains "start" (case
    insensitive), and likewise for "end". Otherwise the first node without
    incoming edges gets a Start above it, and the last node without outgoing
    edges gets an End below it.
    """

    def synthesize(self, diagram: Diagram) -> Diagram:
        """
        Return a diagram with the missing terminals added.

        Args:
            diagram: Positioned diagram

        Returns:
            New Diagram; the input is left untouched
        """
        if not self.has_label(diagram, "start"):
            diagram = self.add_start(diagram)
        if not self.has_label(diagram, "end"):
            diagram = self.add_end(diagram)
        return diagram

    @staticmethod
    def has_label(diagram: Diagram, word: str) -> bool:
        return any(word in node.label.lower() for node in diagram.nodes)

    def add_start(self, diagram: Diagram) -> Diagram:
        """Prepend a Start node above the first node without incoming edges."""
        sources = diagram.sources()
        anchor = sources[0] if sources else None
        if anchor is None:
            logger.debug("No node without incoming edges; Start not added")
            return diagram

        start = _terminal(
            _unique_id(diagram, START_ID),
            "Start",
            x=anchor.center_x - TERMINAL_WIDTH / 2,
            y=anchor.y - START_OFFSET,
        )
        edge = Edge(
            source=start.id,
            target=anchor.id,
            id=_unique_id(diagram, START_EDGE_ID),
            points=(
                Point(start.center_x, start.bottom),
                Point(start.center_x, anchor.y),
            ),
            style=EDGE_STYLE,
        )
        logger.debug("Added Start above %s", anchor.id)
        return Diagram(
            nodes=(start,) + diagram.nodes, edges=(edge,) + diagram.edges
        )

    def add_end(self, diagram: Diagram) -> Diagram:
        """Append an End node below the last node without outgoing edges."""
        sinks = diagram.sinks()
        anchor = sinks[-1] if sinks else None
        if anchor is None:
            logger.debug("No node without outgoing edges; End not added")
            return diagram

        end = _terminal(
            _unique_id(diagram, END_ID),
            "End",
            x=anchor.center_x - TERMINAL_WIDTH / 2,
            y=anchor.bottom + END_GAP,
        )
        edge = Edge(
            source=anchor.id,
            target=end.id,
            id=_unique_id(diagram, END_EDGE_ID),
            points=(
                Point(anchor.center_x, anchor.bottom),
                Point(anchor.center_x, end.y),
            ),
            style=EDGE_STYLE,
        )
        logger.debug("Added End below %s", anchor.id)
        return Diagram(nodes=diagram.nodes + (end,), edges=diagram.edges + (edge,))


def _unique_id(diagram: Diagram, base: str) -> str:
    """Return base, suffixed if a node or edge already uses it."""
    taken = {node.id for node in diagram.nodes}
    taken.update(edge.id for edge in diagram.edges if edge.id)
    candidate = base
    suffix = 2
    while candidate in taken:
        candidate = f"{base}_{suffix}"
        suffix += 1
    return candidate


def _terminal(node_id: str, label: str, x: float, y: float) -> Node:
    return Node(
        id=node_id,
        label=label,
        shape=Shape.TERMINAL,
        width=TERMINAL_WIDTH,
        height=TERMINAL_HEIGHT,
        x=x,
        y=y,
        style=TERMINAL_STYLE,
    )


def add_terminals(diagram: Diagram) -> Diagram:
    """Convenience function running the TerminalSynthesizer."""
    return TerminalSynthesizer().synthesize(diagram)
