"""
GatherRequest - Validated input of one context-gathering call.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devscope.shared.config import MAX_RESULTS_CAP

from .result import ALL_SOURCES, SourceName

Depth = Literal["quick", "thorough"]


class GatherRequest(BaseModel):
    """
    One request to gather developer context.

    ``max_results`` is per source; None means "use the configured default".
    Values above MAX_RESULTS_CAP are clamped rather than rejected.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str
    sources: tuple[SourceName, ...] = ALL_SOURCES
    max_results: int | None = Field(default=None, gt=0, alias="maxResults")
    depth: Depth = "quick"

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query cannot be empty")
        return value

    @field_validator("sources", mode="before")
    @classmethod
    def _normalize_sources(cls, value: Any) -> Any:
        if value is None:
            return ALL_SOURCES
        if isinstance(value, str):
            value = [value]
        if not value:
            raise ValueError("at least one source is required")
        # lowercase and drop duplicates, keeping order
        cleaned = [v.lower() if isinstance(v, str) else v for v in value]
        return tuple(dict.fromkeys(cleaned))

    @field_validator("max_results")
    @classmethod
    def _cap_max_results(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return min(value, MAX_RESULTS_CAP)
