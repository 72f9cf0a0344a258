"""
MES Kernel - production workflow core

A snapshot-based manufacturing-execution kernel with:
- Typed workflow blueprints and master data
- Immutable kanban item snapshots with explicit lineage
- Append-only activity trail
- Structured logging and typed errors
"""

__version__ = "0.1.0"
