"""
MCP server for featureslice.

Exposes read-only migration planning tools to LLMs via the Model Context
Protocol. Nothing is ever written to disk through these tools.

Tools:
    - featureslice_plan: Classify every file and show its planned destination
    - featureslice_explain: Show why one file got its classification

Usage:
    Run: featureslice-mcp
"""

import asyncio

from featureslice.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
