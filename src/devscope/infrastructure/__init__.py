"""Infrastructure layer - external sources and caching."""
