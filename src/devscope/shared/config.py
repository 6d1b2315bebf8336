"""
Runtime settings read from the environment.

Environment Variables:
    GITHUB_TOKEN: Optional GitHub token (higher search rate limits)
    STACKOVERFLOW_KEY: Optional Stack Exchange API key
    REDDIT_USER_AGENT: User-Agent sent to Reddit
    MAX_RESULTS_PER_SOURCE: Default per-source result limit (default: 5)
    DEVSCOPE_CACHE_TTL: Result cache time-to-live in seconds (default: 900)
    DEVSCOPE_CACHE_SIZE: Result cache capacity (default: 100)
    DEVSCOPE_HTTP_TIMEOUT: HTTP timeout in seconds (default: 30)
    MCP_SERVER_NAME: Name advertised by the MCP server
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from .exceptions import ConfigurationError

DEFAULT_SERVER_NAME = "devscope-context-gatherer"
DEFAULT_USER_AGENT = "DevScope-MCP-Server/1.0"
MAX_RESULTS_CAP = 50


@dataclass(frozen=True)
class Settings:
    """Process-wide settings."""
    github_token: str | None = None
    stackoverflow_key: str | None = None
    reddit_user_agent: str = DEFAULT_USER_AGENT
    max_results_per_source: int = 5
    cache_ttl: float = 900.0
    cache_size: int = 100
    http_timeout: float = 30.0
    server_name: str = DEFAULT_SERVER_NAME

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ

        return cls(
            github_token=_optional(env, "GITHUB_TOKEN"),
            stackoverflow_key=_optional(env, "STACKOVERFLOW_KEY"),
            reddit_user_agent=_optional(env, "REDDIT_USER_AGENT") or DEFAULT_USER_AGENT,
            max_results_per_source=_positive_int(env, "MAX_RESULTS_PER_SOURCE", 5),
            cache_ttl=_positive_float(env, "DEVSCOPE_CACHE_TTL", 900.0),
            cache_size=_positive_int(env, "DEVSCOPE_CACHE_SIZE", 100),
            http_timeout=_positive_float(env, "DEVSCOPE_HTTP_TIMEOUT", 30.0),
            server_name=_optional(env, "MCP_SERVER_NAME") or DEFAULT_SERVER_NAME,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain dict, suitable for ``container.config.from_dict``."""
        return asdict(self)


def _optional(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value
