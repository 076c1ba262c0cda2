"""
Read path: redact a document to the sub-tree a principal may see.

The projector walks the document type's schema and keeps a value only if
the component of its field is in the principal's read components for that
document. Embedded subdocuments and populated references are projected as
documents of their own, with their own component resolution.

Invariants:
    - Denial is omission, never an error; only ResolverError escapes
    - A document already on the current path is rendered as its bare id
    - Object and array results that end up empty are omitted
    - Array order in the output matches source order
    - The identity field is added to a projected document only when
      something else survived

How to change safely:
    - New node kinds need a branch in _Projection.node()
    - Never cache component sets between calls
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from .concurrency import gather_all
from .config import EngineConfig
from .errors import ResolverError
from .guard import CycleGuard
from .model import UNSET, Document
from .resolver import ComponentResolver
from .schema import (
    ArrayNode,
    LeafNode,
    ObjectNode,
    ReferenceNode,
    SchemaIndex,
    SubdocumentNode,
    VirtualNode,
)
from .schema.types import ComponentSpec

logger = logging.getLogger(__name__)

Projection = Union[Dict[str, Any], str, None]


class DocumentProjector:
    """Produces read-authorized views of documents.

    Example:
        >>> projector = DocumentProjector(index, resolver)
        >>> await projector.project(luke, principal=None)
        {'_id': 'luke', 'name': 'Luke', 'settings': {'lightsaber': 'blue'}}
    """

    def __init__(
        self,
        schema: SchemaIndex,
        resolver: ComponentResolver,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.schema = schema
        self.resolver = resolver
        self.config = config or EngineConfig()

    async def project(
        self,
        document: Document,
        principal: Optional[str],
        visited: Optional[CycleGuard] = None,
    ) -> Projection:
        """Redact ``document`` for ``principal``.

        Args:
            document: Document to project
            principal: Acting principal (None for anonymous)
            visited: Documents already on the current path

        Returns:
            The redacted tree, the bare id for a back-edge, or None when
            nothing is readable

        Raises:
            ResolverError: If component resolution fails
        """
        visited = visited if visited is not None else CycleGuard()
        if document.id in visited:
            logger.debug(f"Reference cycle at {document.type_name} {document.id}, emitting id")
            return document.id

        branch = visited.extend(document.id)
        components = await self.resolver.resolve_components(document, principal, "read")
        document_type = self.schema.require(document.type_name)

        walk = _Projection(self, document, principal, components, branch)
        content = await walk.object(document_type.root, "")
        if content is UNSET:
            return None
        return {self.config.id_field: document.id, **content}

    async def project_many(
        self,
        documents: Iterable[Document],
        principal: Optional[str],
    ) -> List[Projection]:
        """Project several documents concurrently, preserving order."""
        return await gather_all(self.project(document, principal) for document in documents)


class _Projection:
    """State of one document's projection."""

    def __init__(
        self,
        projector: DocumentProjector,
        document: Document,
        principal: Optional[str],
        components: frozenset,
        visited: CycleGuard,
    ) -> None:
        self.projector = projector
        self.document = document
        self.principal = principal
        self.components = components
        self.visited = visited

    async def allowed(self, spec: Optional[ComponentSpec]) -> bool:
        if spec is None:
            return False
        component = await spec.resolve(self.document)
        return component is not None and component in self.components

    async def object(self, node: ObjectNode, prefix: str) -> Any:
        children = list(node.items())
        results = await gather_all(
            self.node(child, f"{prefix}.{name}" if prefix else name)
            for name, child in children
        )
        content = {
            name: result
            for (name, _), result in zip(children, results)
            if result is not UNSET
        }
        return content if content else UNSET

    async def node(self, node: Any, path: str) -> Any:
        if isinstance(node, ObjectNode):
            return await self.object(node, path)
        if isinstance(node, VirtualNode):
            return await self.virtual(node, path)

        value = self.document.get(path)
        if value is UNSET:
            return UNSET
        if isinstance(node, LeafNode):
            return value if await self.allowed(node.spec) else UNSET
        if isinstance(node, ReferenceNode):
            if not await self.allowed(node.spec):
                return UNSET
            return await self.reference(value)
        if isinstance(node, SubdocumentNode):
            return await self.subdocument(value)
        if isinstance(node, ArrayNode):
            return await self.array(node, value)
        raise TypeError(f"Unhandled schema node at '{path}': {type(node).__name__}")

    async def array(self, node: ArrayNode, value: Any) -> Any:
        if value is None:
            return UNSET
        if node.holds_subdocuments:
            results = await gather_all(self.subdocument(element) for element in value)
        else:
            if not await self.allowed(node.component_spec):
                return UNSET
            if isinstance(node.element, ReferenceNode):
                results = await gather_all(self.reference(element) for element in value)
            else:
                results = list(value)
        survivors = [result for result in results if result is not UNSET]
        return survivors if survivors else UNSET

    async def reference(self, value: Any) -> Any:
        if isinstance(value, Document):
            projected = await self.projector.project(value, self.principal, self.visited)
            return UNSET if projected is None else projected
        return value if value is None else str(value)

    async def subdocument(self, value: Any) -> Any:
        if not isinstance(value, Document):
            return UNSET
        projected = await self.projector.project(value, self.principal, self.visited)
        return UNSET if projected is None else projected

    async def virtual(self, node: VirtualNode, path: str) -> Any:
        if not await self.allowed(node.spec):
            return UNSET
        try:
            value = node.getter(self.document)
        except Exception as e:
            raise ResolverError(
                f"Virtual field '{path}' failed on {self.document.type_name} {self.document.id}: {e}",
                document_id=self.document.id,
                source="virtual",
            ) from e
        return value
