"""
Document model for DocPerm - the handles the engine authorizes against.
"""

from .document import UNSET, AclEntry, Document, Team

__all__ = [
    "UNSET",
    "AclEntry",
    "Document",
    "Team",
]
