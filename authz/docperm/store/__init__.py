"""
Store module for DocPerm - the host document store the engine consumes.

This module provides:
- DocumentStore protocol (team lookup, document lookup, reference population)
- InMemoryDocumentStore for tests and in-process hosts
"""

from .base import DocumentStore
from .memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
]
