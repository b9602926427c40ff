"""
Approval Kernel

The persistence and domain core of the multi-level approval engine:
- Policy definitions (workflows, matrices, delegations)
- Approval instances embedded in business entities
- Typed exceptions and structured logging
- Per-tenant database handles
"""

__version__ = "0.1.0"
