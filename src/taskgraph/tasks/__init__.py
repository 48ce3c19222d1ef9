"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, DependencyEdge, HierarchyNode)
- task_store.py: SQLite-backed task + edge storage, transactions, recursive queries
"""
