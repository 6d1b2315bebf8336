"""
Application DI Container (dependency-injector).

Centralizes creation of the source clients, result cache and gatherer.

Usage::

    from devscope.container import ApplicationContainer
    from devscope.shared import Settings

    container = ApplicationContainer()
    container.config.from_dict(Settings.from_env().to_dict())

    gatherer = container.gatherer()

    # In tests, override any provider:
    container.github_client.override(providers.Object(fake_client))
"""

from __future__ import annotations

import logging

from dependency_injector import containers, providers

logger = logging.getLogger(__name__)


def _create_stackoverflow_client(api_key: str | None, http_timeout: float) -> object:
    """Lazy factory for StackOverflowClient (avoids top-level import)."""
    from devscope.infrastructure.sources import StackOverflowClient

    return StackOverflowClient(api_key=api_key or None, timeout=http_timeout)


def _create_github_client(token: str | None, http_timeout: float) -> object:
    """Lazy factory for GitHubClient."""
    from devscope.infrastructure.sources import GitHubClient

    return GitHubClient(token=token or None, timeout=http_timeout)


def _create_reddit_client(user_agent: str, http_timeout: float) -> object:
    """Lazy factory for RedditClient."""
    from devscope.infrastructure.sources import RedditClient

    return RedditClient(user_agent=user_agent, timeout=http_timeout)


def _create_result_cache(cache_size: int, cache_ttl: float) -> object:
    """Lazy factory for ResultCache."""
    from devscope.infrastructure.cache import ResultCache

    return ResultCache(max_size=cache_size, ttl=cache_ttl)


def _create_gatherer(
    stackoverflow: object,
    github: object,
    reddit: object,
    cache: object,
    max_results_per_source: int,
) -> object:
    """Lazy factory for ContextGatherer."""
    from devscope.application.search import ContextGatherer
    from devscope.domain.entities import SourceName

    return ContextGatherer(
        clients={
            SourceName.STACKOVERFLOW: stackoverflow,
            SourceName.GITHUB: github,
            SourceName.REDDIT: reddit,
        },
        cache=cache,
        default_max_results=max_results_per_source,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the DevScope server.

    Manages creation and lifecycle of:
    - ``stackoverflow_client`` / ``github_client`` / ``reddit_client``
    - ``result_cache``: TTL + LRU cache of finished bundles
    - ``gatherer``: the ContextGatherer pipeline
    """

    config = providers.Configuration()

    stackoverflow_client = providers.Singleton(
        _create_stackoverflow_client,
        api_key=config.stackoverflow_key,
        http_timeout=config.http_timeout,
    )

    github_client = providers.Singleton(
        _create_github_client,
        token=config.github_token,
        http_timeout=config.http_timeout,
    )

    reddit_client = providers.Singleton(
        _create_reddit_client,
        user_agent=config.reddit_user_agent,
        http_timeout=config.http_timeout,
    )

    result_cache = providers.Singleton(
        _create_result_cache,
        cache_size=config.cache_size,
        cache_ttl=config.cache_ttl,
    )

    gatherer = providers.Singleton(
        _create_gatherer,
        stackoverflow=stackoverflow_client,
        github=github_client,
        reddit=reddit_client,
        cache=result_cache,
        max_results_per_source=config.max_results_per_source,
    )


async def close_clients(container: ApplicationContainer) -> None:
    """
    Close the source clients' HTTP connections.

    Clients reopen a connection pool on their next request, so this is safe
    to call at the end of every session.
    """
    for provider in (
        container.stackoverflow_client,
        container.github_client,
        container.reddit_client,
    ):
        close = getattr(provider(), "close", None)
        if close is not None:
            await close()
    logger.info("Source client connections closed")


__all__ = ["ApplicationContainer", "close_clients"]
