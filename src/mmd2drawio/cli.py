"""
Command line entry point.

Usage:
    mmd2drawio -i flowchart.mmd -o flowchart.drawio
"""

import argparse
import logging
import sys
from typing import List, Optional

from .converter import FlowchartConverter, InputNotFoundError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mmd2drawio",
        description="Convert a Mermaid flowchart into a draw.io diagram.",
    )
    parser.add_argument(
        "-i", "--input", required=True, help="Input Mermaid (.mmd) file"
    )
    parser.add_argument(
        "-o", "--output", required=True, help="Output draw.io (.drawio) file"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the converter from the command line.

    Args:
        argv: Arguments without the program name (default: sys.argv[1:])

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        FlowchartConverter().convert_file(args.input, args.output)
    except InputNotFoundError as exc:
        logger.error("Error: %s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
