"""
Task dependency graph engine.

Keeps "must-complete-before" edges between tasks acyclic, answers transitive
queries and completion checks, and keeps a derived cache coherent.
"""

__version__ = "0.1.0"
