"""
Schema module for DocPerm.

This module provides the static description of document types:
- Node variants (ObjectNode, ArrayNode, LeafNode, ReferenceNode,
  VirtualNode, SubdocumentNode)
- Component specs (StaticComponent, ComputedComponent)
- SchemaIndex for type registration and path introspection

Invariants:
    - Schema trees are fixed once registered
    - The SchemaIndex is frozen before an engine serves requests
"""

from .registry import SchemaIndex
from .types import (
    ArrayNode,
    ComputedComponent,
    DocumentType,
    FieldKind,
    LeafNode,
    ObjectNode,
    PermissionOptions,
    ReferenceNode,
    StaticComponent,
    SubdocumentNode,
    VirtualNode,
    array,
    component_spec,
    document_type,
    leaf,
    obj,
    ref,
    subdocuments,
    virtual,
)

__all__ = [
    # Nodes
    "ArrayNode",
    "LeafNode",
    "ObjectNode",
    "ReferenceNode",
    "SubdocumentNode",
    "VirtualNode",
    # Components
    "ComputedComponent",
    "StaticComponent",
    "component_spec",
    # Types
    "DocumentType",
    "FieldKind",
    "PermissionOptions",
    # Builders
    "array",
    "document_type",
    "leaf",
    "obj",
    "ref",
    "subdocuments",
    "virtual",
    # Index
    "SchemaIndex",
]
