"""
Main conversion module.

Combines parsing, layout, terminal synthesis, styling and serialization to
turn flowchart text into a draw.io document.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .layout import SugiyamaLayout
from .models import Diagram
from .parser import Parser
from .serializer import DrawioSerializer
from .styles import apply_styles
from .terminals import TerminalSynthesizer

logger = logging.getLogger(__name__)


class InputNotFoundError(FileNotFoundError):
    """Raised when the flowchart input file does not exist."""

    pass


class FlowchartConverter:
    """
    Convert Mermaid-style flowchart text into draw.io XML.

    Example:
        >>> converter = FlowchartConverter()
        >>> xml = converter.convert('''
        ...     graph TD
        ...     A[Load] --> B{Valid?}
        ...     B -->|Yes| C[Save]
        ... ''')
    """

    def __init__(
        self,
        layout: Optional[SugiyamaLayout] = None,
        add_terminals: bool = True,
        edge_labels: bool = False,
        wrap_mxfile: bool = False,
    ):
        """
        Initialize the converter.

        Args:
            layout: Layout engine to use (default: SugiyamaLayout())
            add_terminals: Whether to synthesize missing Start/End nodes
            edge_labels: Whether to write edge labels into the document
            wrap_mxfile: Whether to wrap the model in an <mxfile> element
        """
        self.parser = Parser()
        self.layout_engine = layout or SugiyamaLayout()
        self.add_terminals = add_terminals
        self.synthesizer = TerminalSynthesizer()
        self.serializer = DrawioSerializer(
            edge_labels=edge_labels, wrap_mxfile=wrap_mxfile
        )

    def parse(self, input_text: str) -> Diagram:
        """Parse flowchart text into an unpositioned diagram."""
        return self.parser.parse(input_text).to_diagram()

    def layout(self, diagram: Diagram) -> Diagram:
        """Position nodes and route edges."""
        return self.layout_engine.layout(diagram).diagram

    def build(self, input_text: str) -> Diagram:
        """
        Run every stage except serialization.

        Args:
            input_text: Flowchart text

        Returns:
            Positioned, styled diagram including any synthetic terminals
        """
        diagram = self.parse(input_text)
        logger.info(
            "Parsed %d nodes and %d edges", len(diagram.nodes), len(diagram.edges)
        )

        diagram = self.layout(diagram)

        if self.add_terminals:
            diagram = self.synthesizer.synthesize(diagram)
            logger.info(
                "Final diagram: %d nodes and %d edges (auto-added start/end if needed)",
                len(diagram.nodes),
                len(diagram.edges),
            )

        return apply_styles(diagram)

    def to_xml(self, diagram: Diagram) -> str:
        """Serialize a finished diagram."""
        return self.serializer.to_string(diagram)

    def convert(self, input_text: str) -> str:
        """
        Convert flowchart text into a draw.io document.

        Args:
            input_text: Flowchart text

        Returns:
            draw.io XML as a string
        """
        return self.to_xml(self.build(input_text))

    def convert_file(
        self, input_path: Union[str, Path], output_path: Union[str, Path]
    ) -> Diagram:
        """
        Convert a flowchart file and write the draw.io document.

        Args:
            input_path: Flowchart text file
            output_path: Destination .drawio file

        Returns:
            The diagram that was written

        Raises:
            InputNotFoundError: If input_path is not a file
        """
        source = Path(input_path)
        if not source.is_file():
            raise InputNotFoundError(f"Input file does not exist: {source}")

        logger.info("Reading flowchart file %s", source)
        diagram = self.build(source.read_text(encoding="utf-8"))

        Path(output_path).write_text(self.to_xml(diagram), encoding="utf-8")
        logger.info("Diagram converted and saved to %s", output_path)
        return diagram


def convert(input_text: str, **kwargs) -> str:
    """
    Convenience function to convert flowchart text.

    Args:
        input_text: Flowchart text
        **kwargs: Options passed to FlowchartConverter

    Returns:
        draw.io XML as a string
    """
    return FlowchartConverter(**kwargs).convert(input_text)
