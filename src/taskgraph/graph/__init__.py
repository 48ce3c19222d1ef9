"""
Dependency graph engine.

Components:
- capability.py: probes the store and picks a traversal strategy
- strategies.py: recursive-query and iterative BFS strategies
- traversal.py: descendants / ancestors / hierarchy / reachability
- guard.py: cycle prevention
- completion.py: direct-dependency completion gate
- service.py: public façade (mutations, cached queries, invalidation hooks)
"""
