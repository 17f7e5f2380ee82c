"""
Portal Kernel

The document workflow core of the operations portal:
- Guarded per-document state machines
- Optimistic concurrency on every mutation
- Append-only audit trail
- Human document numbering
"""

__version__ = "0.1.0"
