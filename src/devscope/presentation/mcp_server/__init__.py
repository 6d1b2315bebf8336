"""
MCP presentation layer.

Run with ``devscope-mcp`` or ``python -m devscope.presentation.mcp_server``;
an mcp.json entry looks like:
    {
        "servers": {
            "devscope": {
                "type": "stdio",
                "command": "devscope-mcp"
            }
        }
    }

To embed the tool in another FastMCP app, call
``register_all_tools(app, gatherer)`` with a ContextGatherer.
"""

from __future__ import annotations

from .server import create_server, main
from .tools import register_all_tools

__all__ = ["create_server", "main", "register_all_tools"]
