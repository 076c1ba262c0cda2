"""
Base protocol for the host document store.

The engine never persists anything and never loads documents. The only
store call it makes is get_team(), for team membership expansion.

get_document() and populate() are for the host: references are projected
as documents only when the host has populated them before calling
project(). A reference still holding a bare id is projected as that id.

Invariants:
    - Lookups of unknown ids return None; errors are raised only for
      backend failures
    - populate() is the only store call that mutates a Document

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ..model import Document, Team


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for host document stores.

    Implementations:
        - InMemoryDocumentStore: tests and in-process hosts
    """

    async def get_team(self, team_id: str) -> Optional[Team]:
        """Team by id, or None if unknown."""
        ...

    async def get_document(self, document_id: str) -> Optional[Document]:
        """Document by id, or None if unknown."""
        ...

    async def populate(self, document: Document, path: str) -> Document:
        """Replace the id(s) stored at ``path`` by the referenced Documents."""
        ...
