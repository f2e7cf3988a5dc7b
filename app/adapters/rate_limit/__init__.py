"""Rate limiting adapters.

This package provides a small abstraction layer with two interchangeable
limiters, a Redis-backed one shared by every API process and an in-process
one, plus a supervising wrapper that falls back from the former to the latter
while the shared store is unreachable.
"""
