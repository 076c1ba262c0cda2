"""
Element-wise operations on arrays of subdocuments.

Arrays of subdocuments cannot be assigned through authorize_write(); they
change one element at a time:
- push: append a new element built from validated input
- remove: delete an element by id
- set: merge validated partial input into an element

Invariants:
    - push and remove require the array's write component on the owner
    - set requires it too unless EngineConfig.array_set_checks_array_component
      is disabled
    - The array gate is checked before any element input is validated
    - Element input is validated against the element type, with the element
      (or, for push, a detached candidate) as the resolving document
    - A failed operation leaves the array and its elements unchanged
    - An array that push created is removed again when remove empties it;
      an array that existed before, even empty, is kept
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .config import EngineConfig
from .errors import NotFoundError, PermissionDenied, SchemaViolation
from .model import Document
from .mutator import DocumentMutator
from .resolver import ComponentResolver
from .schema import ArrayNode, SchemaIndex

logger = logging.getLogger(__name__)


class ArrayElementOps:
    """Gated push/remove/set on arrays of subdocuments.

    Example:
        >>> ops = ArrayElementOps(index, resolver, mutator)
        >>> email = await ops.push(luke, "emails", "luke", {"address": "luke@skywalk.er"})
        >>> await ops.remove(luke, "emails", "luke", email.id)
    """

    def __init__(
        self,
        schema: SchemaIndex,
        resolver: ComponentResolver,
        mutator: DocumentMutator,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.schema = schema
        self.resolver = resolver
        self.mutator = mutator
        self.config = config or EngineConfig()

    async def push(
        self,
        document: Document,
        path: str,
        principal: Optional[str],
        element_input: Any,
        element_id: Optional[str] = None,
    ) -> Document:
        """Append a new element built from ``element_input``.

        Returns:
            The appended element

        Raises:
            PermissionDenied: If the array or an element path is not writable
            SchemaViolation: If the input does not fit the element type
        """
        node = self._array_node(document, path)
        element_type = self.schema.element_type(node)
        if element_id is not None and self._find(document, path, element_id) is not None:
            raise SchemaViolation(f"Element '{element_id}' already exists in '{path}'", path=path)

        # computed components of the new element see the proposed values
        seed = element_input if isinstance(element_input, dict) else None
        candidate = document.new_child(element_type.name, seed, id=element_id)
        await self._require_array_component(document, principal, node, path)
        plan = await self.mutator.validate(candidate, principal, element_input)

        self.mutator.apply(candidate, plan)
        elements = document.get(path)
        if not isinstance(elements, list):
            elements = []
            document.set(path, elements)
            document.implicit_paths.add(path)
        elements.append(candidate)
        logger.debug(f"Pushed {element_type.name} {candidate.id} onto {document.id}.{path}")
        return candidate

    async def remove(
        self,
        document: Document,
        path: str,
        principal: Optional[str],
        element_id: str,
    ) -> Document:
        """Delete the element with ``element_id``.

        Returns:
            The removed element

        Raises:
            PermissionDenied: If the array is not writable
            NotFoundError: If no element has that id
        """
        node = self._array_node(document, path)
        await self._require_array_component(document, principal, node, path)

        element = self._find(document, path, element_id)
        if element is None:
            raise NotFoundError(
                f"Element '{element_id}' not found in '{path}'", "element", str(element_id)
            )
        elements: List[Document] = document.get(path)
        elements.remove(element)
        if not elements and path in document.implicit_paths:
            document.unset(path)
        logger.debug(f"Removed {element.type_name} {element.id} from {document.id}.{path}")
        return element

    async def set(
        self,
        document: Document,
        path: str,
        principal: Optional[str],
        element_id: str,
        partial_input: Any,
    ) -> Document:
        """Merge ``partial_input`` into the element with ``element_id``.

        Returns:
            The updated element

        Raises:
            NotFoundError: If no element has that id
            PermissionDenied: If the array (see config) or an element path is not writable
            SchemaViolation: If the input does not fit the element type
        """
        node = self._array_node(document, path)
        element = self._find(document, path, element_id)
        if element is None:
            raise NotFoundError(
                f"Element '{element_id}' not found in '{path}'", "element", str(element_id)
            )

        if self.config.array_set_checks_array_component:
            await self._require_array_component(document, principal, node, path)
        plan = await self.mutator.validate(element, principal, partial_input)

        self.mutator.apply(element, plan)
        return element

    def _array_node(self, document: Document, path: str) -> ArrayNode:
        node = self.schema.node_at(document.type_name, path)
        if not isinstance(node, ArrayNode) or not node.holds_subdocuments:
            raise SchemaViolation(f"'{path}' is not an array of subdocuments", path=path)
        return node

    def _find(self, document: Document, path: str, element_id: str) -> Optional[Document]:
        elements = document.get(path)
        if not isinstance(elements, list):
            return None
        for element in elements:
            if isinstance(element, Document) and element.id == str(element_id):
                return element
        return None

    async def _require_array_component(
        self,
        document: Document,
        principal: Optional[str],
        node: ArrayNode,
        path: str,
    ) -> None:
        components = await self.resolver.resolve_components(document, principal, "write")
        component = await node.spec.resolve(document) if node.spec is not None else None
        if component is None or component not in components:
            logger.debug(f"Array write denied for {principal} on {document.id}.{path}")
            raise PermissionDenied(path, principal=principal, component=component)
