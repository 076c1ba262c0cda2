"""
Authorization engine - the entry point hosts talk to.

The engine wires the components together around one SchemaIndex and one
DocumentStore, both passed in explicitly:

    SchemaIndex, CycleGuard -> TeamExpander -> ComponentResolver
        -> DocumentProjector / DocumentMutator / ArrayElementOps

Invariants:
    - The schema index is frozen before the engine serves any call
    - Every operation is principal-scoped and atomic from the caller's view
    - The engine holds no per-document state and takes no locks; hosts
      serialize writes per document identity

How to change safely:
    - New operations should delegate to a component, not walk documents here
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Set

from .arrays import ArrayElementOps
from .config import EngineConfig
from .guard import CycleGuard
from .model import Document
from .mutator import DocumentMutator
from .projector import DocumentProjector, Projection
from .resolver import ComponentResolver, ResolvedPermission
from .schema import SchemaIndex
from .store.base import DocumentStore
from .teams import TeamExpander, TeamRef

logger = logging.getLogger(__name__)


class AuthorizationEngine:
    """Field-level authorization over a schema index and a document store.

    Attributes:
        schema: Frozen schema index
        store: Host document store
        config: Engine configuration

    Example:
        >>> engine = AuthorizationEngine(index, store)
        >>> view = await engine.project(luke, "leia")
        >>> await engine.authorize_write(luke, "luke", {"name": "Luke Skywalker"})
    """

    def __init__(
        self,
        schema: SchemaIndex,
        store: DocumentStore,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.schema = schema
        self.store = store
        self.config = config or EngineConfig()
        self.config.validate()

        if not schema.frozen:
            schema.freeze()
        for problem in schema.validate_all():
            logger.warning(f"Schema problem: {problem}")

        self.teams = TeamExpander(store)
        self.resolver = ComponentResolver(schema, self.teams, self.config)
        self.projector = DocumentProjector(schema, self.resolver, self.config)
        self.mutator = DocumentMutator(schema, self.resolver, self.config)
        self.arrays = ArrayElementOps(schema, self.resolver, self.mutator, self.config)

    async def resolve_components(
        self, document: Document, principal: Optional[str], action: str
    ) -> frozenset:
        return await self.resolver.resolve_components(document, principal, action)

    async def expand_users(self, team: TeamRef, visited: Optional[CycleGuard] = None) -> Set[str]:
        return await self.teams.expand_users(team, visited)

    async def get_permissions(self, document: Document) -> List[ResolvedPermission]:
        return await self.resolver.get_permissions(document)

    async def has_permission(
        self, document: Document, principal: Optional[str], action: str, component: str
    ) -> bool:
        return await self.resolver.has_permission(document, principal, action, component)

    async def assert_permission(
        self, document: Document, principal: Optional[str], action: str, component: str
    ) -> None:
        await self.resolver.assert_permission(document, principal, action, component)

    async def project(
        self,
        document: Document,
        principal: Optional[str],
        visited: Optional[CycleGuard] = None,
    ) -> Projection:
        return await self.projector.project(document, principal, visited)

    async def project_many(
        self, documents: Iterable[Document], principal: Optional[str]
    ) -> List[Projection]:
        return await self.projector.project_many(documents, principal)

    async def authorize_write(
        self,
        document: Document,
        principal: Optional[str],
        input: Any,
        overwrite: bool = False,
    ) -> None:
        await self.mutator.authorize_write(document, principal, input, overwrite=overwrite)

    async def push(
        self,
        document: Document,
        path: str,
        principal: Optional[str],
        element_input: Any,
        element_id: Optional[str] = None,
    ) -> Document:
        return await self.arrays.push(document, path, principal, element_input, element_id)

    async def remove(
        self, document: Document, path: str, principal: Optional[str], element_id: str
    ) -> Document:
        return await self.arrays.remove(document, path, principal, element_id)

    async def set_element(
        self,
        document: Document,
        path: str,
        principal: Optional[str],
        element_id: str,
        partial_input: Any,
    ) -> Document:
        return await self.arrays.set(document, path, principal, element_id, partial_input)
