"""MCP server implementation for featureslice."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from featureslice.core.config import load_scope
from featureslice.core.engine import Migration
from featureslice.core.exceptions import FeatureSliceError
from featureslice.core.models import SHARED, Violation

server = Server("featureslice")

_CONFIG_PROPERTY = {
    "type": "string",
    "description": "Path to the migration config (TOML), relative to the working directory",
}


def _get_migration(config: str) -> Migration:
    """Build a Migration for a config path."""
    return Migration(load_scope(Path.cwd() / config))


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="featureslice_plan",
            description=(
                "Dry-run the feature classification of a source tree. Returns, for every "
                "file, its owning feature (or SHARED) and its planned destination, plus "
                "unreached files, cycles and any plan violations. Writes nothing."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "config": _CONFIG_PROPERTY,
                    "feature": {
                        "type": "string",
                        "description": "Only list files owned by this feature or SHARED",
                    },
                },
                "required": ["config"],
            },
        ),
        Tool(
            name="featureslice_explain",
            description=(
                "Explain why a file is owned by a feature, SHARED, or unreached: the set "
                "of features reaching it and one import chain from each entry point."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "config": _CONFIG_PROPERTY,
                    "file": {
                        "type": "string",
                        "description": "Source path relative to the configured source root",
                    },
                },
                "required": ["config", "file"],
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "featureslice_plan":
            result = _handle_plan(arguments["config"], arguments.get("feature"))
        elif name == "featureslice_explain":
            result = _handle_explain(arguments["config"], arguments["file"])
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except FeatureSliceError as e:
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]
    except KeyError as e:
        return [TextContent(type="text", text=json.dumps({"error": f"Missing argument {e}"}))]


def _handle_plan(config: str, feature: str | None) -> dict[str, Any]:
    """Handle featureslice_plan tool."""
    analysis = _get_migration(config).analyze()
    moves = sorted(analysis.plan, key=lambda m: m.source)
    if feature:
        moves = [m for m in moves if m.owner in (feature, SHARED)]

    errors = [Violation.from_error(e) for e in analysis.errors]
    return {
        "files": [
            {
                "source": m.source,
                "destination": m.destination,
                "classification": m.owner,
                "kind": m.kind.value,
            }
            for m in moves
        ],
        "unreached": list(analysis.classification.unreached),
        "cycles": [list(c) for c in analysis.classification.cycles],
        "violations": [v.to_dict() for v in errors if v.fatal],
    }


def _handle_explain(config: str, file: str) -> dict[str, Any]:
    """Handle featureslice_explain tool."""
    return _get_migration(config).explain(file)


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
