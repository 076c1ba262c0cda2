"""
In-memory document store implementation.

This module provides a simple in-memory DocumentStore for:
- Unit and integration tests
- Hosts that keep their documents in process

Invariants:
    - All data is lost on process exit
    - Lookups return the stored objects themselves (no copies), so
      populated references and team graphs may form cycles
    - Safe to use from multiple coroutines

How to change safely:
    - Keep the interface compatible with the DocumentStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Union

from ..errors import NotFoundError
from ..model import Document, Team

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore.

    Attributes:
        team_lookups: Number of get_team() calls served (testing helper)

    Example:
        >>> store = InMemoryDocumentStore()
        >>> store.add_team(Team("admins", users=["zoe"]))
        >>> store.add_document(luke)
        >>> await store.populate(leia, "father")
    """

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}
        self._teams: Dict[str, Team] = {}
        self._failures: Dict[str, Exception] = {}
        self._lock = asyncio.Lock()
        self.team_lookups = 0

    def add_document(self, *documents: Document) -> None:
        for document in documents:
            self._documents[document.id] = document

    def add_team(self, *teams: Team) -> None:
        for team in teams:
            self._teams[team.id] = team

    async def get_team(self, team_id: str) -> Optional[Team]:
        """Team by id, or None if unknown."""
        self.team_lookups += 1
        if team_id in self._failures:
            raise self._failures[team_id]
        return self._teams.get(team_id)

    async def get_document(self, document_id: str) -> Optional[Document]:
        """Document by id, or None if unknown."""
        if document_id in self._failures:
            raise self._failures[document_id]
        return self._documents.get(document_id)

    async def populate(self, document: Document, path: str) -> Document:
        """Replace the id(s) stored at ``path`` by the referenced Documents.

        Raises:
            NotFoundError: If a referenced id is not stored
        """
        async with self._lock:
            value = document.get(path)
            if isinstance(value, list):
                document.set(path, [self._resolve(item) for item in value])
            elif value is not None and not isinstance(value, Document):
                document.set(path, self._resolve(value))

        logger.debug(f"Populated {path} on {document.type_name} {document.id}")
        return document

    def _resolve(self, value: Union[str, Document]) -> Document:
        if isinstance(value, Document):
            return value
        found = self._documents.get(str(value))
        if found is None:
            raise NotFoundError(f"Document '{value}' not found", "document", str(value))
        return found

    # Testing helpers

    def inject_failure(self, key: str, exception: Exception) -> None:
        """Make lookups of ``key`` (team or document id) raise ``exception``."""
        self._failures[key] = exception

    def clear_failures(self) -> None:
        self._failures.clear()

    def documents(self) -> List[Document]:
        return list(self._documents.values())
