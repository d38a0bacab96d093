"""Rate limit storage adapters.

This package provides a small abstraction layer so the service can start with
an in-memory store and later migrate to Redis or another shared store without
changing the limiter or the HTTP layer.
"""
