"""
Write path: validate untrusted partial input, then commit it atomically.

authorize_write() runs in two phases:
1. validate - walk the input against the schema, checking the shape of
   every value and the write component of every touched path. Nothing is
   mutated; the result is a WritePlan.
2. apply - synchronously reset (overwrite mode) and assign the planned
   paths. There is no suspension point in this phase.

Invariants:
    - If validation fails anywhere, the document is left exactly as it was
    - Arrays of subdocuments, virtual fields and populated reference
      objects are never written through this path
    - Keys missing from the input are left untouched (merge semantics)
    - Sibling keys validate concurrently; the first failure wins

How to change safely:
    - Any new check belongs in phase 1; phase 2 must stay await-free
    - Test atomicity with inputs that fail deep inside nested objects
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import Any, List, Optional, Tuple

from .concurrency import gather_all
from .config import EngineConfig
from .errors import PermissionDenied, SchemaViolation
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


@dataclass
class WritePlan:
    """Validated changes, ready to apply.

    Attributes:
        assignments: (path, value) pairs in input order
        resets: Paths to clear first (overwrite mode)
    """

    assignments: List[Tuple[str, Any]] = field(default_factory=list)
    resets: List[str] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.assignments]


class DocumentMutator:
    """Authorizes and applies partial writes to documents.

    Example:
        >>> mutator = DocumentMutator(index, resolver)
        >>> await mutator.authorize_write(luke, "luke", {"settings": {"rememberMe": False}})
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

    async def authorize_write(
        self,
        document: Document,
        principal: Optional[str],
        input: Any,
        overwrite: bool = False,
    ) -> None:
        """Validate ``input`` for ``principal`` and merge it into ``document``.

        Args:
            document: Target document
            principal: Acting principal
            input: Partial document as nested plain dicts
            overwrite: Clear every writable path before merging

        Raises:
            SchemaViolation: If the input does not fit the schema
            PermissionDenied: If a touched path is not writable
            ResolverError: If component resolution fails
        """
        plan = await self.validate(document, principal, input, overwrite=overwrite)
        self.apply(document, plan)
        logger.debug(
            f"Applied write by {principal} to {document.type_name} {document.id}: "
            f"{len(plan.assignments)} paths, {len(plan.resets)} resets"
        )

    async def validate(
        self,
        document: Document,
        principal: Optional[str],
        input: Any,
        *,
        overwrite: bool = False,
    ) -> WritePlan:
        """Phase 1: check ``input`` against ``document``'s schema without mutating it."""
        document_type = self.schema.require(document.type_name)
        components = await self.resolver.resolve_components(document, principal, "write")
        check = _WriteCheck(self, document, principal, components)

        if overwrite:
            assignments, resets = await gather_all(
                [check.object(document_type.root, "", input), check.resettable()]
            )
        else:
            assignments, resets = await check.object(document_type.root, "", input), []
        return WritePlan(assignments=assignments, resets=resets)

    def apply(self, document: Document, plan: WritePlan) -> None:
        """Phase 2: commit a validated plan."""
        for path in plan.resets:
            document.unset(path)
        for path, value in plan.assignments:
            document.set(path, list(value) if isinstance(value, list) else value)


class _WriteCheck:
    """Phase 1 state for one document."""

    def __init__(
        self,
        mutator: DocumentMutator,
        document: Document,
        principal: Optional[str],
        components: frozenset,
    ) -> None:
        self.mutator = mutator
        self.document = document
        self.principal = principal
        self.components = components

    async def allowed(self, spec: Optional[ComponentSpec]) -> Tuple[bool, Optional[str]]:
        if spec is None:
            return False, None
        component = await spec.resolve(self.document)
        return component is not None and component in self.components, component

    async def require(self, spec: Optional[ComponentSpec], path: str) -> None:
        granted, component = await self.allowed(spec)
        if not granted:
            logger.debug(
                f"Write denied for {self.principal} on {self.document.type_name} "
                f"{self.document.id} path '{path}' (component={component})"
            )
            raise PermissionDenied(path, principal=self.principal, component=component)

    async def object(self, node: ObjectNode, prefix: str, value: Any) -> List[Tuple[str, Any]]:
        if not isinstance(value, dict):
            raise SchemaViolation(
                f"Plain object expected at '{prefix or '<root>'}', got {type(value).__name__}",
                path=prefix or None,
            )

        targets = []
        for key, child_value in value.items():
            path = f"{prefix}.{key}" if prefix else key
            child = node.get(key) if isinstance(key, str) else None
            if child is None:
                suggestions = get_close_matches(str(key), node.names(), n=3)
                raise SchemaViolation(f"Unknown path '{path}'", path=path, suggestions=suggestions)
            targets.append((child, path, child_value))

        assignments: List[Tuple[str, Any]] = []
        for result in await gather_all(self.key(*target) for target in targets):
            assignments.extend(result)
        return assignments

    async def key(self, node: Any, path: str, value: Any) -> List[Tuple[str, Any]]:
        if isinstance(node, ObjectNode):
            return await self.object(node, path, value)
        if isinstance(node, LeafNode):
            await self.require(node.spec, path)
            self.check_leaf(node, path, value)
            return [(path, value)]
        if isinstance(node, ReferenceNode):
            await self.require(node.spec, path)
            self.check_reference(path, value)
            return [(path, value)]
        if isinstance(node, ArrayNode) and not node.holds_subdocuments:
            await self.require(node.component_spec, path)
            self.check_array(node, path, value)
            return [(path, value)]
        if isinstance(node, ArrayNode):
            raise SchemaViolation(
                f"Array of subdocuments '{path}' must be changed element-wise (push/remove/set)",
                path=path,
            )
        if isinstance(node, VirtualNode):
            raise SchemaViolation(f"Virtual field '{path}' cannot be written", path=path)
        if isinstance(node, SubdocumentNode):
            raise SchemaViolation(f"Subdocument '{path}' cannot be written directly", path=path)
        raise SchemaViolation(f"Unhandled schema node at '{path}'", path=path)

    def check_leaf(self, node: LeafNode, path: str, value: Any) -> None:
        if value is UNSET or value is None:
            return
        if not node.kind.accepts(value):
            raise SchemaViolation(
                f"Field '{path}' must be of kind {node.kind.value}, got {type(value).__name__}",
                path=path,
            )

    def check_reference(self, path: str, value: Any) -> None:
        if value is UNSET or value is None:
            return
        if isinstance(value, (Document, dict)):
            raise SchemaViolation(
                f"Reference '{path}' must be assigned an id, not a document",
                path=path,
            )
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise SchemaViolation(
                f"Reference '{path}' must be an id, got {type(value).__name__}",
                path=path,
            )

    def check_array(self, node: ArrayNode, path: str, value: Any) -> None:
        if value is UNSET or value is None:
            return
        if not isinstance(value, list):
            raise SchemaViolation(
                f"Field '{path}' must be a list, got {type(value).__name__}",
                path=path,
            )
        for i, item in enumerate(value):
            item_path = f"{path}[{i}]"
            if isinstance(node.element, ReferenceNode):
                self.check_reference(item_path, item)
            elif item is UNSET:
                raise SchemaViolation(f"Field '{item_path}' cannot be unset", path=path)
            else:
                self.check_leaf(node.element, item_path, item)

    async def resettable(self) -> List[str]:
        """Writable paths of the document that overwrite mode clears."""
        candidates = []
        for path, node in self.mutator.schema.paths(self.document.type_name).items():
            if isinstance(node, (VirtualNode, SubdocumentNode)):
                continue
            if isinstance(node, ArrayNode):
                if node.holds_subdocuments:
                    continue
                candidates.append((path, node.component_spec))
            else:
                candidates.append((path, node.spec))

        grants = await gather_all(self.allowed(spec) for _, spec in candidates)
        return [path for (path, _), (granted, _) in zip(candidates, grants) if granted]
