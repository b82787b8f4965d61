"""Core utilities: configuration, caching, auditing, rate limiting."""
