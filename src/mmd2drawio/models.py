"""
Data models for flowchart conversion.

This module contains the dataclasses that make up the graph model passed
between pipeline stages. Every stage returns a new Diagram snapshot instead of
mutating the one it was given.

Classes:
    Shape: Node shape kinds recognised by the parser (plus the terminal kind).
    Point: A single coordinate on a connector path.
    Node: A flowchart node with its size and, after layout, its position.
    Edge: A directed connector between two nodes.
    Diagram: An immutable snapshot of nodes and edges.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

# Default box sizes per shape, applied by the parser before layout.
DEFAULT_WIDTH = 140
DEFAULT_HEIGHT = 70
DIAMOND_WIDTH = 160
DIAMOND_HEIGHT = 100


class Shape(Enum):
    """Visual kind of a node."""

    RECT = "rect"
    DIAMOND = "diamond"
    ROUND = "round"
    TERMINAL = "terminal"


def default_size(shape: Shape) -> Tuple[int, int]:
    """Return the (width, height) a freshly parsed node of this shape gets."""
    if shape is Shape.DIAMOND:
        return DIAMOND_WIDTH, DIAMOND_HEIGHT
    return DEFAULT_WIDTH, DEFAULT_HEIGHT


@dataclass(frozen=True)
class Point:
    """A waypoint on a connector path."""

    x: float
    y: float


@dataclass(frozen=True)
class Node:
    """
    A flowchart node.

    Attributes:
        id: Unique identifier taken from the source token.
        label: Display text (defaults to the id).
        shape: Shape kind, which selects the draw.io style.
        width: Box width.
        height: Box height.
        x: Left edge, or None before layout.
        y: Top edge, or None before layout.
        style: draw.io style string, empty until styles are applied.
    """

    id: str
    label: str
    shape: Shape = Shape.RECT
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    x: Optional[float] = None
    y: Optional[float] = None
    style: str = ""

    @property
    def is_positioned(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Edge:
    """
    A directed connector.

    Attributes:
        source: Source node id.
        target: Target node id.
        label: Optional inline label from the source text.
        id: Connector id, assigned during layout.
        points: Routed path from source anchor to target anchor.
        style: draw.io connector style string.
    """

    source: str
    target: str
    label: str = ""
    id: Optional[str] = None
    points: Tuple[Point, ...] = ()
    style: str = ""

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    @property
    def interior_points(self) -> Tuple[Point, ...]:
        """Waypoints without the two end anchors."""
        if len(self.points) <= 2:
            return ()
        return self.points[1:-1]


@dataclass(frozen=True)
class Diagram:
    """Immutable snapshot of the graph model at one pipeline stage."""

    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    _index: Dict[str, Node] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        # Frozen dataclass: fill the lookup through object.__setattr__
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        index: Dict[str, Node] = {}
        for node in self.nodes:
            index.setdefault(node.id, node)
        object.__setattr__(self, "_index", index)

    def node(self, node_id: str) -> Optional[Node]:
        """Return the node with the given id, or None."""
        return self._index.get(node_id)

    def node_ids(self) -> List[str]:
        """Node ids in discovery order."""
        return [node.id for node in self.nodes]

    def sources(self) -> List[Node]:
        """Nodes with no incoming edge, in discovery order."""
        targets = {edge.target for edge in self.edges}
        return [node for node in self.nodes if node.id not in targets]

    def sinks(self) -> List[Node]:
        """Nodes with no outgoing edge, in discovery order."""
        sources = {edge.source for edge in self.edges}
        return [node for node in self.nodes if node.id not in sources]
