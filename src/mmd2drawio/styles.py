"""
draw.io style strings for nodes and connectors.
"""

from dataclasses import replace

from .models import Diagram, Shape

BASE_STYLE = "whiteSpace=wrap;html=1;fontSize=12;fillColor=#ffffff;strokeColor=#000000;"

RECT_STYLE = BASE_STYLE + "rounded=1;"
# rhombusPerimeter makes connectors end on the angled outline
DIAMOND_STYLE = "shape=rhombus;perimeter=rhombusPerimeter;" + BASE_STYLE
ROUND_STYLE = "shape=ellipse;perimeter=ellipsePerimeter;" + BASE_STYLE
TERMINAL_STYLE = BASE_STYLE

EDGE_STYLE = (
    "edgeStyle=orthogonalEdgeStyle;rounded=1;curved=1;html=1;"
    "endArrow=classic;strokeWidth=2;"
)

SHAPE_STYLES = {
    Shape.DIAMOND: DIAMOND_STYLE,
    Shape.ROUND: ROUND_STYLE,
    Shape.TERMINAL: TERMINAL_STYLE,
}


def resolve_style(shape: Shape) -> str:
    """Return the vertex style for a shape; unknown shapes get the rect style."""
    return SHAPE_STYLES.get(shape, RECT_STYLE)


def apply_styles(diagram: Diagram) -> Diagram:
    """Return a copy of the diagram with every unstyled node and edge styled."""
    nodes = [
        node if node.style else replace(node, style=resolve_style(node.shape))
        for node in diagram.nodes
    ]
    edges = [
        edge if edge.style else replace(edge, style=EDGE_STYLE)
        for edge in diagram.edges
    ]
    return Diagram(nodes=nodes, edges=edges)
