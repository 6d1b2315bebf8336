"""
Server instructions shown to MCP clients.
"""

SERVER_INSTRUCTIONS = """
DevScope gathers developer context from Stack Overflow, GitHub issues and
Reddit, ranks it on one scale and returns a compact bundle.

## Tool

gather_developer_context(query, sources?, max_results?, depth?)
- query: the question or error message, as the user wrote it
- sources: any of "stackoverflow", "github", "reddit" (default: all)
- max_results: results per source (default 5, max 50)
- depth: "quick" (default) or "thorough" (twice as many results per source)

## Reading the result

- summary / highlights: start here. ✓ marks accepted answers or closed issues,
  📌 marks version-specific results, ⭐ marks high relevance.
- citations: cite these URLs when answering. ``score`` is the combined rank
  score, not the source's vote count.
- snippets: unique code blocks in ranked order.
- stats.incompleteSources: sources that failed; results may be partial.

## Tips

- Include versions ("next.js 14", "node 20") to favour version-specific hits.
- Paste the exact error text for bugs; GitHub issues are preferred for them.
- Identical requests within the cache TTL are served from cache
  (stats.cacheHits > 0).
"""
