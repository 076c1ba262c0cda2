"""
DocPerm - field-level authorization for hierarchical documents.

Given a principal, an action and a document (which may embed subdocuments
and reference other documents, and whose ACL names teams that nest other
teams), DocPerm computes which parts of the document the principal may
read, and validates and applies the principal's writes.

Architecture:
    ┌─────────────┐     ┌────────────────┐     ┌───────────────────┐
    │ SchemaIndex │────▶│ TeamExpander   │────▶│ ComponentResolver │
    │ CycleGuard  │     │ (team graphs)  │     │ defaults/pred/ACL │
    └─────────────┘     └────────────────┘     └─────────┬─────────┘
                                                         │
                        ┌────────────────────────────────┼───────────────┐
                        ▼                                ▼               ▼
                 ┌────────────┐                  ┌────────────┐   ┌────────────┐
                 │ Projector  │                  │  Mutator   │   │ ArrayOps   │
                 │  (read)    │                  │  (write)   │   │ push/rm/set│
                 └────────────┘                  └────────────┘   └────────────┘

Invariants:
    - Read denial is omission; write denial is an error that leaves the
      document unchanged
    - Cycles in document and team graphs terminate via identity-keyed guards
    - Component sets are recomputed on every call

Version: see _version.py.
"""

from ._version import __version__
from .engine import AuthorizationEngine
from .errors import (
    DocPermError,
    NotFoundError,
    PermissionDenied,
    ResolverError,
    SchemaViolation,
)

__all__ = [
    "__version__",
    "AuthorizationEngine",
    "DocPermError",
    "NotFoundError",
    "PermissionDenied",
    "ResolverError",
    "SchemaViolation",
]
