"""
Content Sources

Async clients for the external developer-content providers. Each one
returns NormalizedResult objects and raises SourceError subclasses.

Sources:
- StackOverflowClient: Stack Exchange API (questions + accepted answers)
- GitHubClient: GitHub issue search
- RedditClient: Subreddit search
"""

from __future__ import annotations

from .base_client import BaseSourceClient
from .github import GitHubClient
from .reddit import RedditClient
from .stackoverflow import StackOverflowClient

__all__ = [
    "BaseSourceClient",
    "GitHubClient",
    "RedditClient",
    "StackOverflowClient",
]
