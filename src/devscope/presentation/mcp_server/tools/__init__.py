"""
MCP Tools

Tool modules register their tools on a FastMCP instance.

Modules:
- gather_context: gather_developer_context
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .gather_context import TOOL_NAME, register_gather_tools, run_gather_context

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from devscope.application.search import ContextGatherer

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, gatherer: ContextGatherer) -> list[str]:
    """Register every tool and return their names."""
    registered = register_gather_tools(mcp, gatherer)
    logger.info(f"Registered {len(registered)} tool(s): {', '.join(registered)}")
    return registered


__all__ = [
    "TOOL_NAME",
    "register_all_tools",
    "register_gather_tools",
    "run_gather_context",
]
