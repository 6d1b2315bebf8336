"""
Gather Context Tool - the server's single MCP tool.

Tools:
- gather_developer_context: search Stack Overflow, GitHub and Reddit, then
  return one ranked bundle of summary, highlights, citations and snippets

The tool never raises to the MCP client. Validation problems and unexpected
failures come back as JSON error payloads built from the DevScopeError
hierarchy.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from devscope.domain.entities import GatherRequest
from devscope.shared.exceptions import (
    DevScopeError,
    ErrorContext,
    InvalidParameterError,
    InvalidQueryError,
)

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from devscope.application.search import ContextGatherer

logger = logging.getLogger(__name__)

TOOL_NAME = "gather_developer_context"

EXPECTED_VALUES = {
    "sources": "a non-empty list drawn from stackoverflow, github, reddit",
    "max_results": "a positive integer",
    "maxResults": "a positive integer",
    "depth": "'quick' or 'thorough'",
}


def _to_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def request_error(error: PydanticValidationError) -> DevScopeError:
    """Translate the first pydantic error into a DevScope validation error."""
    first = error.errors()[0]
    field = str(first["loc"][0]) if first.get("loc") else "request"
    message = first.get("msg", "invalid value").removeprefix("Value error, ")
    context = ErrorContext(tool_name=TOOL_NAME)

    if field == "query":
        return InvalidQueryError(first.get("input"), reason=message, context=context)
    return InvalidParameterError(
        "max_results" if field == "maxResults" else field,
        first.get("input"),
        EXPECTED_VALUES.get(field, message),
        context=context,
    )


async def run_gather_context(
    gatherer: ContextGatherer,
    query: str,
    sources: list[str] | None = None,
    max_results: int | None = None,
    depth: str = "quick",
) -> str:
    """
    Validate the arguments, run the gatherer, return a JSON string.

    Kept separate from the registered tool so tests can call it directly.
    """
    try:
        request = GatherRequest(
            query=query,
            sources=sources,
            max_results=max_results,
            depth=depth,
        )
    except PydanticValidationError as e:
        error = request_error(e)
        logger.warning(f"{TOOL_NAME}: rejected request: {error}")
        return _to_json(error.to_dict())

    try:
        result = await gatherer.gather(request)
    except DevScopeError as e:
        logger.error(f"{TOOL_NAME} failed: {e}")
        return _to_json(e.to_dict())
    except Exception as e:
        logger.exception(f"{TOOL_NAME} failed unexpectedly: {e}")
        return _to_json({
            "error": f"Unexpected error: {e}",
            "category": "internal",
            "severity": "error",
            "retryable": False,
            "tool": TOOL_NAME,
        })

    return _to_json(result.to_dict())


def register_gather_tools(mcp: FastMCP, gatherer: ContextGatherer) -> list[str]:
    """Register the context-gathering tool."""

    @mcp.tool()
    async def gather_developer_context(
        query: str,
        sources: list[str] | None = None,
        max_results: int | None = None,
        depth: str = "quick",
    ) -> str:
        """
        Gather ranked developer context from Stack Overflow, GitHub and Reddit.

        The query is classified (bug, configuration, performance,
        compatibility, best-practice) and each source is searched with a
        matching strategy. Results are ranked on one scale and reduced to:
        - summary: one-paragraph overview
        - highlights: up to 5 key findings
        - citations: up to 5 sources with snippet and score
        - snippets: up to 5 unique code blocks
        - stats: timing, per-source counts, cache hits, failed sources

        Args:
            query: Developer question or error message
            sources: Subset of ["stackoverflow", "github", "reddit"] (default: all)
            max_results: Results per source (default from MAX_RESULTS_PER_SOURCE, max 50)
            depth: "quick" or "thorough" (thorough doubles results per source)

        Returns:
            JSON bundle, or a JSON error payload with a suggestion

        Example:
            gather_developer_context("react useEffect infinite loop")
            gather_developer_context("vite 5 hmr not working", sources=["github"], depth="thorough")
        """
        return await run_gather_context(gatherer, query, sources, max_results, depth)

    return [TOOL_NAME]
