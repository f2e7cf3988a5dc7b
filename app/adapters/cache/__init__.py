"""Cache store adapters.

The read-through cache depends on ``AbstractCacheStore`` only, so the backing
store (Redis in production, an in-process TTL store for single-process runs
and tests) can be swapped from configuration.
"""
