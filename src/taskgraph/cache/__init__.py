"""
Query cache.

Components:
- layer.py: namespaced get-or-compute + invalidation
- backends.py: in-process and Redis key/value backends
"""
