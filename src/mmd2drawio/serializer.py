"""
draw.io document serialization.

Builds an mxGraphModel tree with lxml:

    mxGraphModel
      root
        mxCell id="0"
        mxCell id="1" parent="0"
        mxCell vertex="1" ...    one per node
        mxCell edge="1" ...      one per edge

Connector end points are left out on purpose so draw.io attaches the ends to
the shape perimeters itself; only interior waypoints are written.
"""

from typing import Dict, Optional

from lxml import etree as ET

from .models import Diagram, Edge, Node
from .styles import EDGE_STYLE, resolve_style

ROOT_CELL_ID = "0"
LAYER_CELL_ID = "1"


def format_number(value: float) -> str:
    """Write integral values without a decimal part, others with two at most."""
    value = round(float(value), 2)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


class DrawioSerializer:
    """
    Serializes a positioned Diagram into draw.io XML.

    Attributes:
        edge_labels: Write edge labels as connector values.
        wrap_mxfile: Wrap the model in <mxfile><diagram> like files saved by
            the draw.io editor.
        page_name: Diagram page name used when wrapping.
    """

    def __init__(
        self,
        edge_labels: bool = False,
        wrap_mxfile: bool = False,
        page_name: str = "Page-1",
    ):
        self.edge_labels = edge_labels
        self.wrap_mxfile = wrap_mxfile
        self.page_name = page_name

    def to_element(self, diagram: Diagram) -> ET._Element:
        """Build the document tree for a diagram."""
        model = ET.Element("mxGraphModel")
        root = ET.SubElement(model, "root")
        ET.SubElement(root, "mxCell", id=ROOT_CELL_ID)
        ET.SubElement(root, "mxCell", id=LAYER_CELL_ID, parent=ROOT_CELL_ID)

        cell_ids = self._assign_cell_ids(diagram)

        for node in diagram.nodes:
            self._add_vertex(root, node, cell_ids[("node", node.id)])

        for index, edge in enumerate(diagram.edges):
            self._add_edge(root, edge, cell_ids[("edge", index)], cell_ids)

        if not self.wrap_mxfile:
            return model

        mxfile = ET.Element("mxfile", host="mmd2drawio")
        page = ET.SubElement(mxfile, "diagram", id="page-1", name=self.page_name)
        page.append(model)
        return mxfile

    def to_string(self, diagram: Diagram) -> str:
        """Serialize a diagram to a pretty-printed XML string."""
        return ET.tostring(
            self.to_element(diagram),
            pretty_print=True,
            xml_declaration=True,
            encoding="UTF-8",
        ).decode("utf-8")

    def _assign_cell_ids(self, diagram: Diagram) -> Dict[tuple, str]:
        """
        Map nodes and edges to unique cell ids.

        Ids are kept verbatim unless they clash with the administrative cells
        or an id handed out earlier; clashes get a numeric suffix.
        """
        taken = {ROOT_CELL_ID, LAYER_CELL_ID}
        cell_ids: Dict[tuple, str] = {}

        for node in diagram.nodes:
            key = ("node", node.id)
            if key not in cell_ids:
                cell_ids[key] = _claim(node.id, taken)

        for index, edge in enumerate(diagram.edges):
            cell_ids[("edge", index)] = _claim(edge.id or f"edge_{index}", taken)

        return cell_ids

    def _add_vertex(self, root: ET._Element, node: Node, cell_id: str) -> None:
        cell = ET.SubElement(
            root,
            "mxCell",
            id=cell_id,
            value=node.label,
            style=node.style or resolve_style(node.shape),
            vertex="1",
            parent=LAYER_CELL_ID,
        )
        geometry = {
            "x": format_number(node.x or 0),
            "y": format_number(node.y or 0),
            "width": format_number(node.width),
            "height": format_number(node.height),
            "as": "geometry",
        }
        ET.SubElement(cell, "mxGeometry", attrib=geometry)

    def _add_edge(
        self,
        root: ET._Element,
        edge: Edge,
        cell_id: str,
        cell_ids: Dict[tuple, str],
    ) -> None:
        attributes = {"id": cell_id}
        if self.edge_labels and edge.label:
            attributes["value"] = edge.label
        attributes.update(
            style=edge.style or EDGE_STYLE,
            edge="1",
            parent=LAYER_CELL_ID,
            source=_endpoint(edge.source, cell_ids),
            target=_endpoint(edge.target, cell_ids),
        )
        cell = ET.SubElement(root, "mxCell", attrib=attributes)
        geometry = ET.SubElement(
            cell, "mxGeometry", attrib={"relative": "1", "as": "geometry"}
        )

        interior = edge.interior_points
        if interior:
            points = ET.SubElement(geometry, "Array", attrib={"as": "points"})
            for point in interior:
                ET.SubElement(
                    points,
                    "mxPoint",
                    x=format_number(point.x),
                    y=format_number(point.y),
                )


def _claim(wanted: str, taken: set) -> str:
    candidate = wanted
    suffix = 2
    while candidate in taken:
        candidate = f"{wanted}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _endpoint(node_id: str, cell_ids: Dict[tuple, str]) -> str:
    # Dangling endpoints keep their raw id
    return cell_ids.get(("node", node_id), node_id)


def serialize_diagram(
    diagram: Diagram, serializer: Optional[DrawioSerializer] = None
) -> str:
    """
    Convenience function to serialize a diagram.

    Args:
        diagram: Positioned diagram
        serializer: Optional configured serializer

    Returns:
        draw.io XML document as a string
    """
    serializer = serializer or DrawioSerializer()
    return serializer.to_string(diagram)
