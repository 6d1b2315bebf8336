"""
FastMCP wiring for DevScope.

``create_server`` builds the dependency container from ``Settings``, attaches
the server instructions and registers the gather tool. The FastMCP lifespan
closes the shared HTTP clients on shutdown.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

from mcp.server.fastmcp import FastMCP

from devscope.container import ApplicationContainer, close_clients
from devscope.shared.config import Settings

from .instructions import SERVER_INSTRUCTIONS
from .tools import register_all_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from devscope.application.search import ContextGatherer

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "sse", "streamable-http")

# set by create_server()
_container: ApplicationContainer | None = None


def get_container() -> ApplicationContainer:
    """Container built by the last ``create_server()`` call."""
    if _container is None:
        msg = "No container yet; create_server() must run first"
        raise RuntimeError(msg)
    return _container


def _make_lifespan(
    container: ApplicationContainer,
) -> Callable[[FastMCP[Any]], AbstractAsyncContextManager[ApplicationContainer]]:
    @asynccontextmanager
    async def _lifespan(server: FastMCP[Any]) -> AsyncIterator[ApplicationContainer]:
        logger.info("Lifecycle: session started")
        try:
            yield container
        finally:
            await close_clients(container)
            logger.info("Lifecycle: session ended, idle connections closed")

    return _lifespan


def create_server(settings: Settings | None = None) -> FastMCP:
    """Build a ready-to-run server; settings default to the environment."""
    global _container
    settings = settings or Settings.from_env()
    logger.info(f"Initializing {settings.server_name}...")

    _container = ApplicationContainer()
    _container.config.from_dict(settings.to_dict())

    gatherer = cast("ContextGatherer", _container.gatherer())
    if not settings.github_token:
        logger.info("GITHUB_TOKEN not set, GitHub search uses unauthenticated limits")

    mcp = FastMCP(
        settings.server_name,
        instructions=SERVER_INSTRUCTIONS,
        lifespan=_make_lifespan(_container),
    )

    tools = register_all_tools(mcp, gatherer)
    logger.info(f"{settings.server_name} initialized with tools: {tools}")
    return mcp


def main(argv: list[str] | None = None) -> None:
    """Console entry point."""
    parser = argparse.ArgumentParser(description="DevScope developer-context MCP server")
    parser.add_argument("--transport", choices=TRANSPORTS, default="stdio")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    # stderr keeps the stdio transport clean
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    server = create_server()
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
