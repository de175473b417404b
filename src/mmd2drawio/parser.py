"""
Parser module for flowchart conversion.

Handles best-effort extraction of nodes and edges from Mermaid-style
flowchart text. Unrecognised lines are skipped, never reported as errors.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import Diagram, Edge, Node, Shape, default_size

logger = logging.getLogger(__name__)

# Named pattern groups and the shape each bracket pair declares.
BRACKET_GROUPS = (
    ("rect", Shape.RECT),
    ("diamond", Shape.DIAMOND),
    ("round", Shape.ROUND),
)


@dataclass
class ParseResult:
    """Result of parsing flowchart text."""

    nodes: Dict[str, Node] = field(default_factory=OrderedDict)
    edges: List[Edge] = field(default_factory=list)
    skipped_lines: int = 0

    def to_diagram(self) -> Diagram:
        """Freeze the parsed nodes and edges into a Diagram snapshot."""
        return Diagram(nodes=tuple(self.nodes.values()), edges=tuple(self.edges))


class Parser:
    """Parses flowchart text into nodes and edges."""

    # Graph declaration line: "graph TD", "flowchart LR", ... (lowercase keyword,
    # so ids such as "Graph[...]" still parse)
    DECLARATION_PATTERN = re.compile(r"^(graph|flowchart)(\s|$)")

    # Node declaration: A[Label], B{Decision}, C(Rounded)
    NODE_PATTERN = re.compile(
        r"(?P<id>\w+)"
        r"(?:\[(?P<rect>[^\]]+)\]|\{(?P<diamond>[^}]+)\}|\((?P<round>[^)]+)\))"
    )

    # Edge: SRC --> DST or SRC -->|Label| DST. Either endpoint may carry a
    # bracketed declaration. The target is matched inside a lookahead so that
    # chains like "A --> B --> C" yield both edges.
    EDGE_PATTERN = re.compile(
        r"(?P<source>\w+)(?:\[[^\]]*\]|\{[^}]*\}|\([^)]*\))?\s*-->\s*"
        r"(?:\|(?P<label>[^|]*)\|\s*)?"
        r"(?=(?P<target>\w+))"
    )

    def parse(self, input_text: str) -> ParseResult:
        """
        Parse flowchart text.

        Uses two passes over the significant lines:
        1. Node pass: collect bracketed node declarations, first one wins
        2. Edge pass: collect arrows, materialising undeclared endpoints as
           default rect nodes labelled with their id

        Args:
            input_text: Multi-line flowchart description

        Returns:
            ParseResult with nodes in discovery order and edges in input order
        """
        lines = self._significant_lines(input_text)
        result = ParseResult()
        matched_lines = set()

        for line_num, line in enumerate(lines):
            for match in self.NODE_PATTERN.finditer(line):
                matched_lines.add(line_num)
                node_id = match.group("id")
                if node_id in result.nodes:
                    continue
                shape, label = self._shape_and_label(match)
                width, height = default_size(shape)
                result.nodes[node_id] = Node(
                    id=node_id, label=label, shape=shape, width=width, height=height
                )

        for line_num, line in enumerate(lines):
            for match in self.EDGE_PATTERN.finditer(line):
                matched_lines.add(line_num)
                source = match.group("source")
                target = match.group("target")
                label = (match.group("label") or "").strip()
                self._ensure_node(result.nodes, source)
                self._ensure_node(result.nodes, target)
                result.edges.append(Edge(source=source, target=target, label=label))

        result.skipped_lines = len(lines) - len(matched_lines)
        if result.skipped_lines:
            logger.debug("Ignored %d unrecognised line(s)", result.skipped_lines)

        return result

    def _significant_lines(self, input_text: str) -> List[str]:
        """Trimmed, non-empty lines without declarations or comments."""
        lines = []
        for line in input_text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("%%"):
                continue
            if self.DECLARATION_PATTERN.match(stripped):
                continue
            lines.append(stripped)
        return lines

    def _shape_and_label(self, match: "re.Match") -> Tuple[Shape, str]:
        for group, shape in BRACKET_GROUPS:
            text = match.group(group)
            if text is not None:
                return shape, self._clean_label(text) or match.group("id")
        return Shape.RECT, match.group("id")

    @staticmethod
    def _clean_label(text: str) -> str:
        label = text.strip()
        if len(label) >= 2 and label[0] == label[-1] == '"':
            label = label[1:-1].strip()
        return label

    @staticmethod
    def _ensure_node(nodes: Dict[str, Node], node_id: str) -> None:
        if node_id not in nodes:
            width, height = default_size(Shape.RECT)
            nodes[node_id] = Node(
                id=node_id, label=node_id, shape=Shape.RECT, width=width, height=height
            )


def parse_flowchart(input_text: str, parser: Optional[Parser] = None) -> Diagram:
    """
    Convenience function to parse flowchart text into a Diagram.

    Args:
        input_text: Multi-line flowchart description
        parser: Optional parser instance to reuse

    Returns:
        Diagram with unpositioned nodes and edges
    """
    parser = parser or Parser()
    return parser.parse(input_text).to_diagram()
