"""Pytest configuration and shared fixtures for mmd2drawio tests."""

import pytest
from lxml import etree

from mmd2drawio import FlowchartConverter, Parser, SugiyamaLayout, parse_flowchart


@pytest.fixture
def simple_input():
    """Simple linear flowchart input."""
    return """
    graph TD
    A[Receive order] --> B[Pack items]
    B --> C[Ship parcel]
    """


@pytest.fixture
def decision_input():
    """Flowchart with a decision and a loop back."""
    return """
    graph TD
    A[Start here] --> B{Valid?}
    B -->|Yes| C[Process]
    B -->|No| D(Fix input)
    D --> B
    C --> E[Finish]
    """


@pytest.fixture
def cyclic_input():
    """Flowchart made only of a cycle."""
    return """
    graph TD
    A[One] --> B[Two]
    B --> C[Three]
    C --> A
    """


@pytest.fixture
def parser():
    """Default Parser instance."""
    return Parser()


@pytest.fixture
def layout_engine():
    """Default SugiyamaLayout instance."""
    return SugiyamaLayout()


@pytest.fixture
def converter():
    """Default FlowchartConverter instance."""
    return FlowchartConverter()


@pytest.fixture
def simple_diagram(simple_input):
    """Parsed, unpositioned simple diagram."""
    return parse_flowchart(simple_input)


@pytest.fixture
def parse_xml():
    """Parse a serialized document back into an lxml tree."""

    def _parse(document: str):
        return etree.fromstring(document.encode("utf-8"))

    return _parse
