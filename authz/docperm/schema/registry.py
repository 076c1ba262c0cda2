"""
Schema index for DocPerm.

The SchemaIndex is the authority for all document type definitions that an
engine works with. It provides:
- Registration of document types
- Lookup by name
- Flattened path introspection (dotted paths, nested objects)
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Invariants:
    - The index is mutable during setup, frozen before serving
    - Once frozen, no new types can be registered
    - Type names are unique
    - Path listings never descend into subdocuments or referenced types

How to change safely:
    - Register all types before handing the index to an engine
    - There is no process-wide index; pass the instance explicitly

Example:
    >>> index = SchemaIndex()
    >>> index.register(User)
    >>> index.freeze()
    'sha256:...'
    >>> index.paths("User")
    {'name': LeafNode(...), 'settings.rememberMe': LeafNode(...)}
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, List, Optional, Set

from ..errors import DuplicateRegistrationError, RegistryFrozenError, SchemaViolation
from .types import (
    ArrayNode,
    DocumentType,
    ObjectNode,
    ReferenceNode,
    SchemaNode,
    SubdocumentNode,
)

logger = logging.getLogger(__name__)


class SchemaIndex:
    """Registry of document types with path introspection.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the index is frozen (immutable)
        fingerprint: SHA-256 hash of the schema (computed on freeze)
    """

    def __init__(self) -> None:
        self._types: Dict[str, DocumentType] = {}
        self._paths: Dict[str, Dict[str, SchemaNode]] = {}
        self._nested: Dict[str, Set[str]] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the index is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register(self, document_type: DocumentType) -> None:
        """Register a document type.

        Raises:
            RegistryFrozenError: If the index is frozen
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register document type '{document_type.name}': index is frozen"
                )
            if document_type.name in self._types:
                raise DuplicateRegistrationError(
                    f"Document type '{document_type.name}' already registered",
                    document_type.name,
                )

            paths: Dict[str, SchemaNode] = {}
            nested: Set[str] = set()
            _flatten(document_type.root, "", paths, nested)

            self._types[document_type.name] = document_type
            self._paths[document_type.name] = paths
            self._nested[document_type.name] = nested
            logger.debug(f"Registered document type: {document_type.name} ({len(paths)} paths)")

    def get(self, type_name: str) -> Optional[DocumentType]:
        """Get a document type by name, or None."""
        return self._types.get(type_name)

    def require(self, type_name: str) -> DocumentType:
        """Get a document type by name.

        Raises:
            SchemaViolation: If the type is not registered
        """
        document_type = self._types.get(type_name)
        if document_type is None:
            raise SchemaViolation(f"Unknown document type '{type_name}'")
        return document_type

    def types(self) -> Iterator[DocumentType]:
        """Iterate over all registered document types."""
        yield from self._types.values()

    def paths(self, type_name: str) -> Dict[str, SchemaNode]:
        """Dotted path -> non-object node, in declaration order."""
        self.require(type_name)
        return dict(self._paths[type_name])

    def nested(self, type_name: str) -> Set[str]:
        """Dotted paths of nested objects."""
        self.require(type_name)
        return set(self._nested[type_name])

    def node_at(self, type_name: str, path: str) -> Optional[SchemaNode]:
        """Schema node at a dotted path, or None."""
        node: Optional[SchemaNode] = self.require(type_name).root
        for part in path.split("."):
            if not isinstance(node, ObjectNode):
                return None
            node = node.get(part)
        return node

    def element_type(self, node: ArrayNode) -> DocumentType:
        """Document type held by an array of subdocuments."""
        if not isinstance(node.element, SubdocumentNode):
            raise SchemaViolation("Array does not hold subdocuments")
        return self.require(node.element.type_name)

    def freeze(self) -> str:
        """Freeze the index and compute its fingerprint.

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Schema index is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Schema index frozen with {len(self._types)} document types, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Canonical representation, sorted by type name."""
        return {"document_types": [self._types[name].to_dict() for name in sorted(self._types)]}

    def validate_all(self) -> List[str]:
        """Check that every reference and subdocument names a registered type.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        for document_type in self._types.values():
            for path, node in self._paths[document_type.name].items():
                target = node.element if isinstance(node, ArrayNode) else node
                if isinstance(target, ReferenceNode) and target.ref not in self._types:
                    errors.append(
                        f"Path '{path}' in '{document_type.name}' references "
                        f"unknown type '{target.ref}'"
                    )
                if isinstance(target, SubdocumentNode) and target.type_name not in self._types:
                    errors.append(
                        f"Path '{path}' in '{document_type.name}' embeds "
                        f"unknown type '{target.type_name}'"
                    )
        return errors


def _flatten(node: ObjectNode, prefix: str, paths: Dict[str, SchemaNode], nested: Set[str]) -> None:
    for name, child in node.items():
        path = f"{prefix}.{name}" if prefix else name
        if isinstance(child, ObjectNode):
            nested.add(path)
            _flatten(child, path, paths, nested)
        else:
            paths[path] = child
