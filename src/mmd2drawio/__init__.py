"""
mmd2drawio - Mermaid flowcharts to draw.io diagrams

A Python library for converting Mermaid-style flowchart text into draw.io
documents with a layered (Sugiyama) layout.

Example:
    >>> from mmd2drawio import FlowchartConverter
    >>> converter = FlowchartConverter()
    >>> xml = converter.convert('''
    ...     graph TD
    ...     A[Collect] --> B{Complete?}
    ...     B -->|No| A
    ... ''')
"""

from .converter import FlowchartConverter, InputNotFoundError, convert
from .layout import LayoutResult, NodeLayout, SugiyamaLayout, compute_layout
from .models import Diagram, Edge, Node, Point, Shape
from .parser import ParseResult, Parser, parse_flowchart
from .serializer import DrawioSerializer, serialize_diagram
from .styles import EDGE_STYLE, apply_styles, resolve_style
from .terminals import TerminalSynthesizer, add_terminals

__version__ = "0.1.0"

__all__ = [
    # Main API
    "FlowchartConverter",
    "InputNotFoundError",
    "convert",
    # Model
    "Diagram",
    "Edge",
    "Node",
    "Point",
    "Shape",
    # Parser
    "Parser",
    "ParseResult",
    "parse_flowchart",
    # Layout
    "SugiyamaLayout",
    "LayoutResult",
    "NodeLayout",
    "compute_layout",
    # Terminals
    "TerminalSynthesizer",
    "add_terminals",
    # Styles
    "EDGE_STYLE",
    "apply_styles",
    "resolve_style",
    # Serializer
    "DrawioSerializer",
    "serialize_diagram",
]
