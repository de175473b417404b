"""Unit tests for the layout module."""

import pytest

from mmd2drawio.layout import (
    LayoutResult,
    NodeLayout,
    SugiyamaLayout,
    compute_layout,
)
from mmd2drawio.models import Diagram, Edge, Node
from mmd2drawio.parser import parse_flowchart
from mmd2drawio.styles import EDGE_STYLE


def boxes_overlap(a: Node, b: Node) -> bool:
    return not (
        a.x + a.width <= b.x
        or b.x + b.width <= a.x
        or a.y + a.height <= b.y
        or b.y + b.height <= a.y
    )


class TestNodeLayout:
    """Tests for NodeLayout dataclass."""

    def test_node_layout_defaults(self):
        """Test NodeLayout default values."""
        node = NodeLayout(name="test")
        assert node.name == "test"
        assert node.layer == 0
        assert node.position == 0
        assert node.x == 0
        assert node.y == 0
        assert node.width == 0
        assert node.height == 0
        assert node.virtual is False

    def test_node_layout_edges(self):
        """Test box edges computed from the centre."""
        node = NodeLayout(name="test", x=100, y=50, width=40, height=20)
        assert node.left == 80
        assert node.right == 120
        assert node.top == 40
        assert node.bottom == 60


class TestLayoutResult:
    """Tests for LayoutResult dataclass."""

    def test_layout_result_defaults(self):
        """Test LayoutResult default values."""
        result = LayoutResult()
        assert result.diagram.nodes == ()
        assert result.nodes == {}
        assert result.layers == []
        assert result.back_edges == set()
        assert result.has_cycles is False


class TestSettings:
    """Tests for layout settings validation."""

    def test_defaults(self, layout_engine):
        """Test default separations."""
        assert layout_engine.rank_sep == 60
        assert layout_engine.node_sep == 60
        assert layout_engine.edge_sep == 20

    def test_negative_separation_rejected(self):
        """Test that negative separations raise ValueError."""
        with pytest.raises(ValueError):
            SugiyamaLayout(node_sep=-1)

    def test_zero_passes_rejected(self):
        """Test that zero passes raise ValueError."""
        with pytest.raises(ValueError):
            SugiyamaLayout(ordering_passes=0)


class TestRanks:
    """Tests for rank assignment."""

    def test_linear_layers(self, layout_engine):
        """Test that a chain gets one node per layer."""
        result = layout_engine.layout(parse_flowchart("A --> B --> C"))
        assert result.layers == [["A"], ["B"], ["C"]]
        assert result.nodes["A"].layer == 0
        assert result.nodes["C"].layer == 2

    def test_linear_y_order(self, layout_engine):
        """Test that a chain is drawn strictly top to bottom."""
        diagram = layout_engine.layout(parse_flowchart("A-->B-->C")).diagram
        a, b, c = (diagram.node(n) for n in "ABC")
        assert a.y < b.y < c.y

    def test_longest_path_ranking(self, layout_engine):
        """Test that a node sits below its deepest dependency."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                B --> C
                A --> C
                """
            )
        )
        assert result.nodes["C"].layer == 2

    def test_branching_layers(self, layout_engine):
        """Test that siblings share a layer."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                A --> C
                B --> D
                C --> D
                """
            )
        )
        assert result.nodes["B"].layer == result.nodes["C"].layer == 1
        assert result.nodes["D"].layer == 2

    def test_rank_spacing(self, layout_engine):
        """Test the vertical gap between adjacent ranks."""
        diagram = layout_engine.layout(parse_flowchart("A --> B")).diagram
        a, b = diagram.node("A"), diagram.node("B")
        assert b.y - a.bottom == 60

    def test_rank_height_uses_tallest_box(self, layout_engine):
        """Test that a rank with a diamond pushes the next rank down."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                R[Root] --> D{Decide}
                R --> S[Side]
                D --> N[Next]
                """
            )
        ).diagram
        assert diagram.node("N").y == 70 + 60 + 100 + 60
        # Boxes in one rank share a centre line
        assert diagram.node("D").center_y == diagram.node("S").center_y


class TestCycles:
    """Tests for cyclic input."""

    def test_cycle_detected(self, layout_engine):
        """Test that back edges are reported."""
        result = layout_engine.layout(parse_flowchart("A --> B --> C --> A"))
        assert result.has_cycles is True
        assert result.back_edges == {("C", "A")}
        assert result.layers == [["A"], ["B"], ["C"]]

    def test_acyclic_has_no_back_edges(self, layout_engine):
        """Test that DAGs report no back edges."""
        result = layout_engine.layout(parse_flowchart("A --> B"))
        assert result.has_cycles is False
        assert result.back_edges == set()

    def test_back_edge_routed_on_the_right(self, layout_engine):
        """Test that a loop back runs in a lane right of the boxes."""
        diagram = layout_engine.layout(parse_flowchart("A --> B --> C --> A")).diagram
        back = diagram.edges[2]
        right_edge = max(n.x + n.width for n in diagram.nodes)
        assert len(back.points) == 4
        assert all(p.x > right_edge for p in back.interior_points)

    def test_self_loop(self, layout_engine):
        """Test that a self-loop gets a small loop of waypoints."""
        diagram = layout_engine.layout(parse_flowchart("A --> A")).diagram
        edge = diagram.edges[0]
        node = diagram.node("A")
        assert len(edge.interior_points) == 2
        assert all(p.x > node.x + node.width for p in edge.interior_points)


class TestCoordinates:
    """Tests for coordinate assignment."""

    def test_origin(self, layout_engine):
        """Test that the drawing starts at the origin."""
        diagram = layout_engine.layout(parse_flowchart("A --> B")).diagram
        assert min(n.x for n in diagram.nodes) == 0
        assert min(n.y for n in diagram.nodes) == 0

    def test_chain_aligned(self, layout_engine):
        """Test that a straight chain is vertically aligned."""
        diagram = layout_engine.layout(parse_flowchart("A --> B --> C")).diagram
        assert len({n.center_x for n in diagram.nodes}) == 1

    def test_node_separation(self, layout_engine):
        """Test the minimum gap between boxes in one rank."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                A --> C
                A --> D
                """
            )
        ).diagram
        row = sorted((diagram.node(n) for n in "BCD"), key=lambda n: n.x)
        for left, right in zip(row, row[1:]):
            assert right.x - (left.x + left.width) >= 60

    def test_parent_centred_over_children(self, layout_engine):
        """Test that a parent is balanced over its two children."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A{Split} --> B
                A --> C
                """
            )
        ).diagram
        children = [diagram.node("B"), diagram.node("C")]
        mean = sum(n.center_x for n in children) / 2
        assert diagram.node("A").center_x == mean

    def test_no_overlaps(self, layout_engine, decision_input):
        """Test that no two boxes overlap."""
        diagram = layout_engine.layout(parse_flowchart(decision_input)).diagram
        nodes = list(diagram.nodes)
        for i, a in enumerate(nodes):
            for b in nodes[i + 1 :]:
                assert not boxes_overlap(a, b)

    def test_long_edge_clears_box(self, layout_engine):
        """Test the clearance between a long edge and a box it passes."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A --> B --> C
                A --> C
                """
            )
        )
        passing = [box for box in result.nodes.values() if box.virtual]
        assert len(passing) == 1
        box = result.nodes["B"]
        gap = box.width / 2 + (layout_engine.node_sep + layout_engine.edge_sep) / 2
        assert abs(passing[0].x - box.x) >= gap

    def test_long_edges_keep_edge_separation(self, layout_engine):
        """Test that long edges through one rank stay edge_sep apart."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A --> B --> C
                A --> C
                A --> C
                """
            )
        )
        passing = sorted(
            (box for box in result.nodes.values() if box.virtual),
            key=lambda box: box.x,
        )
        assert len(passing) == 2
        assert passing[1].x - passing[0].x >= layout_engine.edge_sep
        box = result.nodes["B"]
        gap = box.width / 2 + (layout_engine.node_sep + layout_engine.edge_sep) / 2
        for virtual in passing:
            assert abs(virtual.x - box.x) >= gap

    def test_disconnected_components(self, layout_engine):
        """Test that disconnected parts are laid out side by side."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                C --> D
                E[Alone]
                """
            )
        ).diagram
        assert all(n.is_positioned for n in diagram.nodes)
        top_row = [diagram.node(n) for n in ("A", "C", "E")]
        assert len({n.y for n in top_row}) == 1
        assert len({n.x for n in top_row}) == 3

    def test_sizes_preserved(self, layout_engine):
        """Test that layout keeps the parsed box sizes."""
        diagram = layout_engine.layout(parse_flowchart("A{Q} --> B")).diagram
        assert (diagram.node("A").width, diagram.node("A").height) == (160, 100)
        assert (diagram.node("B").width, diagram.node("B").height) == (140, 70)


class TestOrdering:
    """Tests for in-rank ordering."""

    def test_seeded_by_discovery_order(self, layout_engine):
        """Test that unconnected siblings keep discovery order."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                A --> C
                """
            )
        )
        assert result.layers[1] == ["B", "C"]

    def test_crossing_removed(self, layout_engine):
        """Test that an obvious crossing is untangled."""
        result = layout_engine.layout(
            parse_flowchart(
                """
                A[a]
                B[b]
                C[c]
                D[d]
                A --> D
                B --> C
                """
            )
        )
        assert result.layers[0] == ["A", "B"]
        assert result.layers[1] == ["D", "C"]


class TestEdgeRouting:
    """Tests for edge ids and paths."""

    def test_edge_ids_sequential(self, layout_engine):
        """Test that edges are numbered in input order."""
        diagram = layout_engine.layout(parse_flowchart("A --> B --> C")).diagram
        assert [e.id for e in diagram.edges] == ["edge_0", "edge_1"]

    def test_edge_style(self, layout_engine):
        """Test that edges get the connector style."""
        diagram = layout_engine.layout(parse_flowchart("A --> B")).diagram
        assert diagram.edges[0].style == EDGE_STYLE

    def test_aligned_edge_has_no_interior_points(self, layout_engine):
        """Test that a straight edge runs anchor to anchor."""
        diagram = layout_engine.layout(parse_flowchart("A --> B")).diagram
        edge = diagram.edges[0]
        a, b = diagram.node("A"), diagram.node("B")
        assert len(edge.points) == 2
        assert (edge.points[0].x, edge.points[0].y) == (a.center_x, a.bottom)
        assert (edge.points[-1].x, edge.points[-1].y) == (b.center_x, b.y)

    def test_offset_edge_is_orthogonal(self, layout_engine):
        """Test that misaligned edges only use horizontal/vertical segments."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A{Split} --> B
                A --> C
                """
            )
        ).diagram
        for edge in diagram.edges:
            assert len(edge.points) == 4
            for start, end in zip(edge.points, edge.points[1:]):
                assert start.x == end.x or start.y == end.y

    def test_long_edge_passes_between_ranks(self, layout_engine):
        """Test that an edge spanning ranks gets a full path."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A --> B --> C
                A --> C
                """
            )
        ).diagram
        long_edge = diagram.edges[2]
        assert long_edge.points[0].y == diagram.node("A").bottom
        assert long_edge.points[-1].y == diagram.node("C").y
        for start, end in zip(long_edge.points, long_edge.points[1:]):
            assert start.x == end.x or start.y == end.y

    def test_parallel_edges_each_routed(self, layout_engine):
        """Test that parallel edges keep separate entries."""
        diagram = layout_engine.layout(
            parse_flowchart(
                """
                A --> B
                A --> B
                """
            )
        ).diagram
        assert len(diagram.edges) == 2
        assert all(edge.points for edge in diagram.edges)


class TestEdgeCases:
    """Tests for unusual input."""

    def test_empty_diagram(self, layout_engine):
        """Test that an empty diagram stays empty."""
        result = layout_engine.layout(Diagram())
        assert result.diagram.nodes == ()
        assert result.diagram.edges == ()
        assert result.layers == []

    def test_single_node(self, layout_engine):
        """Test a lone node."""
        diagram = layout_engine.layout(parse_flowchart("A[Only]")).diagram
        node = diagram.node("A")
        assert (node.x, node.y) == (0, 0)

    def test_dangling_endpoint_placeholder(self, layout_engine):
        """Test that a hand-built edge to an unknown node does not break layout."""
        diagram = Diagram(
            nodes=[Node(id="A", label="A")],
            edges=[Edge(source="A", target="ghost")],
        )
        result = layout_engine.layout(diagram)
        assert result.diagram.node_ids() == ["A"]
        assert len(result.diagram.edges[0].points) >= 2

    def test_input_not_mutated(self, layout_engine, simple_diagram):
        """Test that layout returns a new diagram."""
        layout_engine.layout(simple_diagram)
        assert all(not n.is_positioned for n in simple_diagram.nodes)

    def test_deterministic(self, decision_input):
        """Test that repeated layouts are identical."""
        first = compute_layout(parse_flowchart(decision_input))
        second = compute_layout(parse_flowchart(decision_input))
        assert first == second
