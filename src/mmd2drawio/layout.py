"""
Layout module using networkx for layered (Sugiyama) graph layout.

Uses networkx for:
- Graph representation
- Cycle detection
- Topological sorting / rank assignment

The remaining steps (virtual nodes for long edges, barycenter ordering,
coordinate assignment and orthogonal edge routing) run on plain lists so
that the result depends only on the input order.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set, Tuple

import networkx as nx

from .models import Diagram, Edge, Point
from .styles import EDGE_STYLE

logger = logging.getLogger(__name__)

VIRTUAL_PREFIX = "__virtual_"

# Half height of the loop drawn for self-referencing edges.
SELF_LOOP_SPREAD = 15


@dataclass
class NodeLayout:
    """Represents a node's layout information."""

    name: str
    layer: int = 0
    position: int = 0  # Position within layer
    x: float = 0  # Center x
    y: float = 0  # Center y
    width: float = 0
    height: float = 0
    virtual: bool = False

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2


@dataclass
class LayoutResult:
    """Result of the layout algorithm."""

    diagram: Diagram = field(default_factory=Diagram)
    nodes: Dict[str, NodeLayout] = field(default_factory=dict)  # Virtual too
    layers: List[List[str]] = field(default_factory=list)
    back_edges: Set[Tuple[str, str]] = field(default_factory=set)
    has_cycles: bool = False


class SugiyamaLayout:
    """
    Top-to-bottom layered layout.

    Steps:
    1. Break cycles by ignoring DFS back edges
    2. Assign ranks by longest path from the sources
    3. Split long edges with virtual nodes
    4. Order each rank with barycenter sweeps
    5. Assign coordinates and route edges orthogonally
    """

    def __init__(
        self,
        rank_sep: float = 60,
        node_sep: float = 60,
        edge_sep: float = 20,
        ordering_passes: int = 4,
        positioning_passes: int = 4,
    ):
        """
        Initialize the layout engine.

        Args:
            rank_sep: Vertical gap between adjacent ranks
            node_sep: Horizontal gap between adjacent boxes in a rank
            edge_sep: Minimum clearance next to an edge
            ordering_passes: Number of down/up barycenter sweeps
            positioning_passes: Number of down/up coordinate balancing sweeps
        """
        if min(rank_sep, node_sep, edge_sep) < 0:
            raise ValueError("separations must not be negative")
        if ordering_passes < 1 or positioning_passes < 1:
            raise ValueError("layout passes must be at least 1")

        self.rank_sep = rank_sep
        self.node_sep = node_sep
        self.edge_sep = edge_sep
        self.ordering_passes = ordering_passes
        self.positioning_passes = positioning_passes

        self.graph: Optional[nx.DiGraph] = None
        self.back_edges: Set[Tuple[str, str]] = set()

    def layout(self, diagram: Diagram) -> LayoutResult:
        """
        Compute positions for every node and a path for every edge.

        Args:
            diagram: Parsed diagram with sized but unpositioned nodes

        Returns:
            LayoutResult whose diagram carries top-left node coordinates,
            edge ids and routed edge points
        """
        result = LayoutResult()
        if not diagram.nodes:
            result.diagram = Diagram(
                nodes=(), edges=self._finish_edges(diagram.edges, {})
            )
            return result

        sizes = {node.id: (node.width, node.height) for node in diagram.nodes}
        order = diagram.node_ids()
        for edge in diagram.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in sizes:
                    # Undeclared endpoint (hand-built diagrams only; the parser declares
                    # every endpoint): laid out as a zero-size placeholder
                    sizes[endpoint] = (0, 0)
                    order.append(endpoint)

        # Build networkx graph; self-loops never influence ranking
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(order)
        self.graph.add_edges_from(
            (edge.source, edge.target)
            for edge in diagram.edges
            if not edge.is_self_loop
        )

        self.back_edges = set()
        has_cycles = not nx.is_directed_acyclic_graph(self.graph)
        if has_cycles:
            self._break_cycles(order)

        ranks = self._assign_ranks()
        layers, chains, virtual = self._build_layers(order, ranks, diagram.edges)
        predecessors, successors = _chain_neighbors(chains)
        layers = self._order_layers(layers, predecessors, successors)
        layouts = self._assign_coordinates(
            layers, sizes, virtual, predecessors, successors
        )

        routes = self._route_edges(diagram.edges, chains, layouts, layers)
        edges = self._finish_edges(diagram.edges, routes)

        nodes = []
        for node in diagram.nodes:
            box = layouts[node.id]
            nodes.append(replace(node, x=box.left, y=box.top))

        result.diagram = Diagram(nodes=nodes, edges=edges)
        result.nodes = layouts
        result.layers = [
            [name for name in layer if name not in virtual] for layer in layers
        ]
        result.back_edges = set(self.back_edges)
        result.has_cycles = has_cycles

        logger.debug(
            "Laid out %d node(s) in %d rank(s), %d back edge(s)",
            len(nodes),
            len(layers),
            len(self.back_edges),
        )
        return result

    def _break_cycles(self, order: List[str]) -> None:
        """
        Identify back edges with an iterative DFS.

        The search starts from nodes without predecessors, then from any
        node still unvisited, both in discovery order.
        """
        roots = [n for n in order if self.graph.in_degree(n) == 0]
        starts = roots + [n for n in order if n not in roots]

        visited: Set[str] = set()
        on_stack: Set[str] = set()

        for start in starts:
            if start in visited:
                continue
            visited.add(start)
            on_stack.add(start)
            stack = [(start, iter(self.graph.successors(start)))]

            while stack:
                node, successors = stack[-1]
                for successor in successors:
                    if successor not in visited:
                        visited.add(successor)
                        on_stack.add(successor)
                        children = iter(self.graph.successors(successor))
                        stack.append((successor, children))
                        break
                    if successor in on_stack:
                        self.back_edges.add((node, successor))
                else:
                    stack.pop()
                    on_stack.discard(node)

    def _working_graph(self) -> nx.DiGraph:
        """Copy of the graph with back edges reversed, which is acyclic."""
        working = self.graph.copy()
        working.remove_edges_from(self.back_edges)
        working.add_edges_from((target, source) for source, target in self.back_edges)
        return working

    def _assign_ranks(self) -> Dict[str, int]:
        """Assign ranks using the longest path from the sources."""
        working = self._working_graph()
        ranks: Dict[str, int] = {}

        for node in nx.topological_sort(working):
            predecessors = list(working.predecessors(node))
            if not predecessors:
                ranks[node] = 0
            else:
                ranks[node] = max(ranks[p] for p in predecessors) + 1

        return ranks

    def _build_layers(
        self, order: List[str], ranks: Dict[str, int], edges: Tuple[Edge, ...]
    ) -> Tuple[List[List[str]], Dict[int, List[str]], Set[str]]:
        """
        Group nodes by rank and split long forward edges.

        Returns:
            (layers, chains, virtual) where chains maps an edge index to the
            downward node sequence it passes through
        """
        layers: List[List[str]] = [[] for _ in range(max(ranks.values()) + 1)]
        for node in order:
            layers[ranks[node]].append(node)

        chains: Dict[int, List[str]] = {}
        virtual: Set[str] = set()

        for index, edge in enumerate(edges):
            if edge.is_self_loop or (edge.source, edge.target) in self.back_edges:
                continue
            chain = [edge.source]
            for rank in range(ranks[edge.source] + 1, ranks[edge.target]):
                name = f"{VIRTUAL_PREFIX}{index}_{rank}"
                layers[rank].append(name)
                virtual.add(name)
                chain.append(name)
            chain.append(edge.target)
            chains[index] = chain

        return layers, chains, virtual

    def _order_layers(
        self,
        layers: List[List[str]],
        predecessors: Dict[str, List[str]],
        successors: Dict[str, List[str]],
    ) -> List[List[str]]:
        """
        Order nodes within each layer to reduce edge crossings.
        Uses barycenter sweeps and keeps the best ordering seen.
        """
        if len(layers) <= 1:
            return layers

        best = [list(layer) for layer in layers]
        best_crossings = self._count_crossings(best, successors)

        for _ in range(self.ordering_passes):
            if best_crossings == 0:
                break

            # Forward pass
            for i in range(1, len(layers)):
                layers[i] = self._order_layer_by_barycenter(
                    layers[i], layers[i - 1], predecessors
                )

            # Backward pass
            for i in range(len(layers) - 2, -1, -1):
                layers[i] = self._order_layer_by_barycenter(
                    layers[i], layers[i + 1], successors
                )

            crossings = self._count_crossings(layers, successors)
            if crossings < best_crossings:
                best = [list(layer) for layer in layers]
                best_crossings = crossings

        return best

    def _order_layer_by_barycenter(
        self,
        layer: List[str],
        ref_layer: List[str],
        neighbors: Dict[str, List[str]],
    ) -> List[str]:
        """
        Order nodes by barycenter (average position of connected nodes).
        """
        ref_positions = {node: i for i, node in enumerate(ref_layer)}
        current = {node: i for i, node in enumerate(layer)}

        def barycenter(node: str) -> float:
            positions = [
                ref_positions[n] for n in neighbors.get(node, []) if n in ref_positions
            ]

            if not positions:
                # Keep original order for nodes with no connections to ref layer
                return current[node]

            return sum(positions) / len(positions)

        return sorted(layer, key=barycenter)

    @staticmethod
    def _count_crossings(
        layers: List[List[str]], successors: Dict[str, List[str]]
    ) -> int:
        """Count crossings between every pair of adjacent layers."""
        total = 0
        for upper, lower in zip(layers, layers[1:]):
            lower_positions = {node: i for i, node in enumerate(lower)}
            segments = [
                (i, lower_positions[target])
                for i, node in enumerate(upper)
                for target in successors.get(node, [])
                if target in lower_positions
            ]
            for a, (a_top, a_bottom) in enumerate(segments):
                for b_top, b_bottom in segments[a + 1 :]:
                    if (a_top - b_top) * (a_bottom - b_bottom) < 0:
                        total += 1
        return total

    def _assign_coordinates(
        self,
        layers: List[List[str]],
        sizes: Dict[str, Tuple[float, float]],
        virtual: Set[str],
        predecessors: Dict[str, List[str]],
        successors: Dict[str, List[str]],
    ) -> Dict[str, NodeLayout]:
        """
        Place ranks top to bottom and balance x positions between ranks.
        """
        layouts: Dict[str, NodeLayout] = {}

        # Vertical: each rank is as tall as its tallest box
        top = 0.0
        for layer_idx, layer in enumerate(layers):
            rank_height = max(
                (sizes[n][1] for n in layer if n not in virtual), default=0
            )
            for pos_idx, name in enumerate(layer):
                width, height = (0, 0) if name in virtual else sizes[name]
                layouts[name] = NodeLayout(
                    name=name,
                    layer=layer_idx,
                    position=pos_idx,
                    y=top + rank_height / 2,
                    width=width,
                    height=height,
                    virtual=name in virtual,
                )
            top += rank_height + self.rank_sep

        # Horizontal: start packed around x = 0, then pull towards neighbours
        for layer in layers:
            self._place_layer(layer, layouts, {name: None for name in layer})

        for _ in range(self.positioning_passes):
            for layer in layers[1:]:
                self._place_layer(
                    layer, layouts, self._desired(layer, layouts, predecessors)
                )
            for layer in reversed(layers[:-1]):
                self._place_layer(
                    layer, layouts, self._desired(layer, layouts, successors)
                )

        # Shift the drawing so it starts at x = 0
        shift = -min(box.left for box in layouts.values())
        for box in layouts.values():
            box.x += shift

        return layouts

    def _desired(
        self,
        layer: List[str],
        layouts: Dict[str, NodeLayout],
        neighbors: Dict[str, List[str]],
    ) -> Dict[str, Optional[float]]:
        desired: Dict[str, Optional[float]] = {}
        for name in layer:
            linked = neighbors.get(name)
            if linked:
                desired[name] = sum(layouts[n].x for n in linked) / len(linked)
            else:
                desired[name] = None
        return desired

    def _separation(self, left: NodeLayout, right: NodeLayout) -> float:
        """Minimum distance between the centres of two neighbours in a rank."""
        if left.virtual and right.virtual:
            gap = self.edge_sep
        elif left.virtual or right.virtual:
            gap = (self.node_sep + self.edge_sep) / 2
        else:
            gap = self.node_sep
        return (left.width + right.width) / 2 + gap

    def _place_layer(
        self,
        layer: List[str],
        layouts: Dict[str, NodeLayout],
        desired: Dict[str, Optional[float]],
    ) -> None:
        """
        Move a layer as close as possible to its desired x positions while
        keeping its order and minimum separations.

        Least-squares fit solved with pool-adjacent-violators on the positions
        relative to a left-packed layout. Nodes without a desired position
        stay where they are.
        """
        if not layer:
            return

        offsets = [0.0]
        for left, right in zip(layer, layer[1:]):
            gap = self._separation(layouts[left], layouts[right])
            offsets.append(offsets[-1] + gap)

        targets = []
        for name, offset in zip(layer, offsets):
            wanted = desired[name]
            if wanted is None:
                wanted = layouts[name].x
            targets.append(wanted - offset)

        # Each block: [sum of targets, count]
        blocks: List[List[float]] = []
        for target in targets:
            blocks.append([target, 1])
            while len(blocks) > 1 and (
                blocks[-2][0] / blocks[-2][1] > blocks[-1][0] / blocks[-1][1]
            ):
                total, count = blocks.pop()
                blocks[-1][0] += total
                blocks[-1][1] += count

        fitted: List[float] = []
        for total, count in blocks:
            fitted.extend([round(total / count)] * int(count))

        for name, base, offset in zip(layer, fitted, offsets):
            layouts[name].x = base + offset

    def _route_edges(
        self,
        edges: Tuple[Edge, ...],
        chains: Dict[int, List[str]],
        layouts: Dict[str, NodeLayout],
        layers: List[List[str]],
    ) -> Dict[int, Tuple[Point, ...]]:
        """
        Route every edge as an orthogonal polyline.

        Forward edges leave the source bottom-centre, bend in the gaps between
        ranks and enter the target top-centre. Back edges and self-loops run
        in lanes to the right of the boxes they span.
        """
        routes: Dict[int, Tuple[Point, ...]] = {}
        rank_bottoms = [
            max((layouts[n].bottom for n in layer), default=0) for layer in layers
        ]
        lanes_used: Dict[Tuple[int, int], int] = {}

        for index, edge in enumerate(edges):
            if index in chains:
                routes[index] = self._route_forward(
                    chains[index], layouts, rank_bottoms
                )
            elif edge.is_self_loop:
                routes[index] = self._route_self_loop(layouts[edge.source])
            else:
                routes[index] = self._route_back_edge(
                    layouts[edge.source], layouts[edge.target], layouts, lanes_used
                )

        return routes

    def _route_forward(
        self,
        chain: List[str],
        layouts: Dict[str, NodeLayout],
        rank_bottoms: List[float],
    ) -> Tuple[Point, ...]:
        source = layouts[chain[0]]
        target = layouts[chain[-1]]
        points = [Point(source.x, source.bottom)]

        for upper_name, lower_name in zip(chain, chain[1:]):
            upper = layouts[upper_name]
            lower = layouts[lower_name]
            if upper.x != lower.x:
                bend_y = rank_bottoms[upper.layer] + self.rank_sep / 2
                points.append(Point(upper.x, bend_y))
                points.append(Point(lower.x, bend_y))

        points.append(Point(target.x, target.top))
        return _simplify(points)

    def _route_self_loop(self, box: NodeLayout) -> Tuple[Point, ...]:
        spread = min(SELF_LOOP_SPREAD, box.height / 4)
        lane_x = box.right + self.edge_sep
        return (
            Point(box.right, box.y - spread),
            Point(lane_x, box.y - spread),
            Point(lane_x, box.y + spread),
            Point(box.right, box.y + spread),
        )

    def _route_back_edge(
        self,
        source: NodeLayout,
        target: NodeLayout,
        layouts: Dict[str, NodeLayout],
        lanes_used: Dict[Tuple[int, int], int],
    ) -> Tuple[Point, ...]:
        low, high = sorted((source.layer, target.layer))
        right_edge = max(
            box.right for box in layouts.values() if low <= box.layer <= high
        )
        lane = lanes_used.get((low, high), 0) + 1
        lanes_used[(low, high)] = lane
        lane_x = right_edge + self.edge_sep * lane

        return _simplify(
            [
                Point(source.right, source.y),
                Point(lane_x, source.y),
                Point(lane_x, target.y),
                Point(target.right, target.y),
            ]
        )

    def _finish_edges(
        self, edges: Tuple[Edge, ...], routes: Dict[int, Tuple[Point, ...]]
    ) -> List[Edge]:
        """Give each edge its sequential id, connector style and route."""
        return [
            replace(
                edge,
                id=f"edge_{index}",
                points=routes.get(index, ()),
                style=edge.style or EDGE_STYLE,
            )
            for index, edge in enumerate(edges)
        ]


def _chain_neighbors(
    chains: Dict[int, List[str]],
) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    """Upper and lower neighbours of every node along the layered edges."""
    predecessors: Dict[str, List[str]] = {}
    successors: Dict[str, List[str]] = {}
    for chain in chains.values():
        for upper, lower in zip(chain, chain[1:]):
            successors.setdefault(upper, []).append(lower)
            predecessors.setdefault(lower, []).append(upper)
    return predecessors, successors


def _simplify(points: List[Point]) -> Tuple[Point, ...]:
    """Drop repeated points and middle points of straight runs."""
    unique: List[Point] = []
    for point in points:
        if not unique or unique[-1] != point:
            unique.append(point)

    simplified: List[Point] = []
    for point in unique:
        if len(simplified) >= 2:
            before, middle = simplified[-2], simplified[-1]
            if (before.x == middle.x == point.x) or (before.y == middle.y == point.y):
                simplified.pop()
        simplified.append(point)
    return tuple(simplified)


def compute_layout(diagram: Diagram, **kwargs) -> Diagram:
    """
    Convenience function to lay out a diagram.

    Args:
        diagram: Parsed diagram
        **kwargs: Settings passed to SugiyamaLayout

    Returns:
        Diagram with positioned nodes and routed edges
    """
    return SugiyamaLayout(**kwargs).layout(diagram).diagram
