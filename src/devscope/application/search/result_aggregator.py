"""
ResultAggregator - Ranked Results to a Bounded Context Bundle

Reduces a ranked list into what an MCP client can consume in one go:
summary sentence, highlights, citations, unique code snippets and
per-source counters.

Architecture Decision:
    Only the top TOP_N results feed the summary, highlights and citations,
    which bounds output size regardless of how much the sources return.
    Source counts still cover the full ranked set.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from devscope.domain.entities import Citation, CodeSnippet, GatherContextResult, GatherStats

if TYPE_CHECKING:
    from collections.abc import Sequence

    from devscope.domain.entities import RankedResult


TOP_N = 10
MAX_HIGHLIGHTS = 5
MAX_CITATIONS = 5
MAX_SNIPPETS = 5
TOP_HIGHLIGHTS = 3
VERSION_HIGHLIGHTS = 2
HIGH_RELEVANCE_HIGHLIGHTS = 2

TOP_RESULT_THRESHOLD = 80
HIGH_RELEVANCE_THRESHOLD = 70

SNIPPET_LENGTH = 200
MIN_PARAGRAPH_LENGTH = 50
MIN_CODE_LENGTH = 20

EMPTY_SUMMARY = "No relevant results found for your query."

_FENCED_CODE = re.compile(r"```.*?```", re.DOTALL)


def to_iso_utc(value: datetime) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ResultAggregator:
    """Builds a GatherContextResult from ranked results."""

    def aggregate(
        self,
        ranked: Sequence[RankedResult],
        elapsed_ms: int,
        cache_hits: int,
        incomplete_sources: Sequence[str] | None = None,
    ) -> GatherContextResult:
        top = list(ranked[:TOP_N])

        return GatherContextResult(
            summary=self.generate_summary(top),
            highlights=self.extract_highlights(top),
            citations=self.create_citations(top),
            snippets=self.collect_code_snippets(top),
            stats=GatherStats(
                elapsed_ms=elapsed_ms,
                source_counts=self.source_counts(ranked),
                cache_hits=cache_hits,
                incomplete_sources=list(incomplete_sources) if incomplete_sources else None,
            ),
        )

    @staticmethod
    def generate_summary(results: Sequence[RankedResult]) -> str:
        if not results:
            return EMPTY_SUMMARY

        sources = list(dict.fromkeys(r.source.value for r in results))
        parts = [f"Found {len(results)} relevant results from {' and '.join(sources)}."]

        accepted = sum(1 for r in results if r.is_accepted)
        if accepted:
            parts.append(f"{accepted} result(s) have accepted/verified solutions.")

        top = results[0]
        if top.final_score > TOP_RESULT_THRESHOLD:
            parts.append(
                f'The top result "{top.title}" appears highly relevant '
                f"with a score of {round(top.final_score)}."
            )

        versions = list(dict.fromkeys(r.version for r in results if r.version))
        if versions:
            parts.append(f"Version-specific information found for: {', '.join(versions)}.")

        return " ".join(parts)

    @staticmethod
    def extract_highlights(results: Sequence[RankedResult]) -> list[str]:
        """
        Up to five highlight lines, no title listed twice.

        Order: top results (check mark if accepted), then versioned results,
        then high-relevance results.
        """
        highlights: list[str] = []
        seen_titles: set[str] = set()

        for result in results[:TOP_HIGHLIGHTS]:
            if result.title in seen_titles:
                continue
            marker = "✓" if result.is_accepted else "•"
            highlights.append(f"{marker} {result.title} ({result.source.value})")
            seen_titles.add(result.title)

        versioned = [r for r in results if r.version and r.title not in seen_titles]
        for result in versioned[:VERSION_HIGHLIGHTS]:
            highlights.append(f"📌 Version {result.version}: {result.title}")
            seen_titles.add(result.title)

        high_score = [
            r for r in results
            if r.final_score > HIGH_RELEVANCE_THRESHOLD and r.title not in seen_titles
        ]
        for result in high_score[:HIGH_RELEVANCE_HIGHLIGHTS]:
            highlights.append(f"⭐ High relevance: {result.title}")
            seen_titles.add(result.title)

        return highlights[:MAX_HIGHLIGHTS]

    def create_citations(self, results: Sequence[RankedResult]) -> list[Citation]:
        return [
            Citation(
                title=r.title,
                url=r.url,
                source=r.source.value,
                author=r.author,
                created_at=to_iso_utc(r.created_at),
                score=round(r.final_score),
                snippet=self.extract_snippet(r.content),
                version=r.version,
            )
            for r in results[:MAX_CITATIONS]
        ]

    @staticmethod
    def extract_snippet(content: str) -> str:
        """First substantial prose paragraph, code blocks replaced by [code]."""
        without_code = _FENCED_CODE.sub("[code]", content)

        for paragraph in without_code.split("\n\n"):
            if len(paragraph.strip()) > MIN_PARAGRAPH_LENGTH:
                if len(paragraph) > SNIPPET_LENGTH:
                    return paragraph[:SNIPPET_LENGTH] + "..."
                return paragraph

        if len(content) > SNIPPET_LENGTH:
            return content[:SNIPPET_LENGTH] + "..."
        return content

    @staticmethod
    def collect_code_snippets(results: Sequence[RankedResult]) -> list[CodeSnippet]:
        """Unique code blocks in ranked order, short ones dropped."""
        snippets: list[CodeSnippet] = []
        seen: set[str] = set()

        for result in results:
            for snippet in result.code_snippets:
                key = snippet.code.strip()
                if len(snippet.code) <= MIN_CODE_LENGTH or key in seen:
                    continue
                seen.add(key)
                snippets.append(snippet)
                if len(snippets) >= MAX_SNIPPETS:
                    return snippets

        return snippets

    @staticmethod
    def source_counts(results: Sequence[RankedResult]) -> dict[str, int]:
        counts: dict[str, int] = {}
        for result in results:
            counts[result.source.value] = counts.get(result.source.value, 0) + 1
        return counts
