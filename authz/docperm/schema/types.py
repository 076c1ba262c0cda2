"""
Core type definitions for the DocPerm schema system.

This module defines the static description of a document type:
- ComponentSpec: StaticComponent or ComputedComponent (resolved per document instance)
- SchemaNode variants: ObjectNode, ArrayNode, LeafNode, ReferenceNode,
  VirtualNode, SubdocumentNode
- DocumentType: a named root ObjectNode plus its PermissionOptions

Invariants:
    - Schema trees are acyclic and never mutated at runtime
    - The kind of every node and component spec is decided once, when the
      schema is declared, never by inspecting values at access time
    - A node without a component spec is neither readable nor writable
    - Subdocuments and references name their target type; the SchemaIndex
      resolves the name

How to change safely:
    - Add new node kinds as new frozen dataclasses and handle them in the
      projector and the mutator
    - Keep to_dict() canonical, the fingerprint depends on it

Example:
    >>> from authz.docperm.schema.types import document_type, leaf, obj
    >>> User = document_type(
    ...     "User",
    ...     {
    ...         "name": leaf("info", kind="str"),
    ...         "settings": obj(rememberMe=leaf("settings", kind="bool")),
    ...     },
    ... )
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..errors import ResolverError

Component = str
ComponentSet = frozenset


class FieldKind(Enum):
    """Primitive value kinds accepted by leaf fields on write."""

    ANY = "any"
    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")

    def accepts(self, value: Any) -> bool:
        """Check a non-null primitive against this kind."""
        validators = {
            FieldKind.ANY: lambda v: isinstance(v, (str, int, float, bool)),
            FieldKind.STRING: lambda v: isinstance(v, str),
            FieldKind.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
            FieldKind.FLOAT: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
            FieldKind.BOOLEAN: lambda v: isinstance(v, bool),
        }
        return validators[self](value)


@dataclass(frozen=True)
class StaticComponent:
    """A component that is the same for every instance of the type."""

    component: Component

    async def resolve(self, document: Any) -> Optional[Component]:
        return self.component

    def to_dict(self) -> str:
        return self.component


@dataclass(frozen=True)
class ComputedComponent:
    """A component computed from the document instance.

    The function receives the document and returns a component name or
    None. It may be a coroutine function (e.g. when it has to look
    something up).
    """

    fn: Callable[[Any], Union[Optional[Component], Awaitable[Optional[Component]]]]

    async def resolve(self, document: Any) -> Optional[Component]:
        try:
            result = self.fn(document)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ResolverError(
                f"Computed component {self.name} failed: {e}",
                document_id=getattr(document, "id", None),
                source="component",
            ) from e
        if result is not None and not isinstance(result, str):
            raise ResolverError(
                f"Computed component {self.name} returned {type(result).__name__}, "
                f"expected a component name or None",
                document_id=getattr(document, "id", None),
                source="component",
            )
        return result

    @property
    def name(self) -> str:
        return getattr(self.fn, "__name__", type(self.fn).__name__)

    def to_dict(self) -> str:
        return f"computed:{self.name}"


ComponentSpec = Union[StaticComponent, ComputedComponent]


def component_spec(value: Union[str, Callable, ComponentSpec, None]) -> Optional[ComponentSpec]:
    """Turn a declaration value into a ComponentSpec variant.

    Args:
        value: component name, callable, existing spec, or None

    Returns:
        StaticComponent, ComputedComponent, or None for "no component"

    Raises:
        TypeError: If value cannot be interpreted as a component
    """
    if value is None or isinstance(value, (StaticComponent, ComputedComponent)):
        return value
    if isinstance(value, str):
        if not value:
            raise ValueError("Component name cannot be empty")
        return StaticComponent(value)
    if callable(value):
        return ComputedComponent(value)
    raise TypeError(f"Invalid component spec: {value!r}")


def _spec_dict(spec: Optional[ComponentSpec]) -> Optional[str]:
    return spec.to_dict() if spec is not None else None


@dataclass(frozen=True)
class LeafNode:
    """A primitive field (string, number, boolean or null)."""

    spec: Optional[ComponentSpec] = None
    kind: FieldKind = FieldKind.ANY
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"node": "leaf", "component": _spec_dict(self.spec), "kind": self.kind.value}


@dataclass(frozen=True)
class ReferenceNode:
    """A reference to another document, stored as its id or populated."""

    ref: str
    spec: Optional[ComponentSpec] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"node": "ref", "component": _spec_dict(self.spec), "ref": self.ref}


@dataclass(frozen=True)
class VirtualNode:
    """A field without backing storage, computed from the document."""

    getter: Callable[[Any], Any]
    spec: Optional[ComponentSpec] = None

    def to_dict(self) -> Dict[str, Any]:
        name = getattr(self.getter, "__name__", "virtual")
        return {"node": "virtual", "component": _spec_dict(self.spec), "getter": name}


@dataclass(frozen=True)
class SubdocumentNode:
    """An embedded document type, authorized on its own."""

    type_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"node": "subdocument", "type": self.type_name}


@dataclass(frozen=True)
class ArrayNode:
    """An array of leaves, references or subdocuments.

    Attributes:
        element: Schema of each element
        spec: Array-level component. Falls back to the element's spec for
            arrays of leaves and references.
    """

    element: Union[LeafNode, ReferenceNode, SubdocumentNode]
    spec: Optional[ComponentSpec] = None

    def __post_init__(self) -> None:
        if not isinstance(self.element, (LeafNode, ReferenceNode, SubdocumentNode)):
            raise TypeError(
                f"Array elements must be leaves, references or subdocuments, "
                f"got {type(self.element).__name__}"
            )

    @property
    def component_spec(self) -> Optional[ComponentSpec]:
        if self.spec is not None:
            return self.spec
        return getattr(self.element, "spec", None)

    @property
    def holds_subdocuments(self) -> bool:
        return isinstance(self.element, SubdocumentNode)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": "array",
            "component": _spec_dict(self.spec),
            "element": self.element.to_dict(),
        }


@dataclass(frozen=True)
class ObjectNode:
    """A nested object; children keep their declaration order."""

    children: Tuple[Tuple[str, "SchemaNode"], ...] = ()

    def __post_init__(self) -> None:
        names = [name for name, _ in self.children]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field name in object: {names}")
        for name in names:
            if not name or "." in name:
                raise ValueError(f"Invalid field name '{name}'")

    def get(self, name: str) -> Optional[SchemaNode]:
        for child_name, node in self.children:
            if child_name == name:
                return node
        return None

    def names(self) -> list[str]:
        return [name for name, _ in self.children]

    def items(self) -> Iterable[Tuple[str, SchemaNode]]:
        return iter(self.children)

    def to_dict(self) -> Dict[str, Any]:
        return {"node": "object", "children": {name: n.to_dict() for name, n in self.children}}


SchemaNode = Union[ObjectNode, ArrayNode, LeafNode, ReferenceNode, VirtualNode, SubdocumentNode]


@dataclass(frozen=True)
class PermissionOptions:
    """Where a document type's components come from.

    Attributes:
        defaults: Components every principal holds, per action
        predicate: Optional ``(document, principal, action) -> components``,
            sync or async
        from_document: Whether the document's embedded ACL is consulted
    """

    defaults: Mapping[str, frozenset] = dataclass_field(default_factory=dict)
    predicate: Optional[Callable[..., Any]] = None
    from_document: bool = True

    def defaults_for(self, action: str) -> frozenset:
        return frozenset(self.defaults.get(action, ()))


@dataclass(frozen=True, eq=False)
class DocumentType:
    """Definition of a document type.

    Attributes:
        name: Unique type name (used by references and subdocuments)
        root: Root object node
        permissions: Component sources for this type
        description: Human-readable description

    Example:
        >>> Email = DocumentType(
        ...     name="Email",
        ...     root=obj(address=leaf("contact"), visible=leaf("contactSettings")),
        ... )
    """

    name: str
    root: ObjectNode
    permissions: PermissionOptions = dataclass_field(default_factory=PermissionOptions)
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Document type name cannot be empty")
        if not isinstance(self.root, ObjectNode):
            raise TypeError(f"Root of document type '{self.name}' must be an ObjectNode")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "root": self.root.to_dict()}
        if self.permissions.defaults:
            result["defaults"] = {
                action: sorted(components)
                for action, components in sorted(self.permissions.defaults.items())
            }
        if self.permissions.predicate is not None:
            result["predicate"] = getattr(self.permissions.predicate, "__name__", "predicate")
        result["from_document"] = self.permissions.from_document
        return result

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentType):
            return NotImplemented
        return self.name == other.name


def _coerce(value: Any) -> SchemaNode:
    """Nested plain mappings declare nested objects."""
    if isinstance(value, Mapping):
        return obj(value)
    if isinstance(value, (ObjectNode, ArrayNode, LeafNode, ReferenceNode, VirtualNode, SubdocumentNode)):
        return value
    raise TypeError(f"Invalid schema node: {value!r}")


def obj(children: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> ObjectNode:
    """Declare a nested object from a mapping and/or keyword arguments."""
    merged: Dict[str, Any] = dict(children or {})
    merged.update(kwargs)
    return ObjectNode(tuple((name, _coerce(node)) for name, node in merged.items()))


def leaf(
    component: Union[str, Callable, None] = None,
    *,
    kind: Union[str, FieldKind] = FieldKind.ANY,
    description: str = "",
) -> LeafNode:
    """Declare a primitive field.

    Example:
        >>> name = leaf("info", kind="str")
        >>> address = leaf(lambda doc: "public" if doc.get("visible") else "private")
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return LeafNode(spec=component_spec(component), kind=kind, description=description)


def ref(type_name: str, component: Union[str, Callable, None] = None) -> ReferenceNode:
    """Declare a reference to a document of ``type_name``."""
    return ReferenceNode(ref=type_name, spec=component_spec(component))


def virtual(getter: Callable[[Any], Any], component: Union[str, Callable, None] = None) -> VirtualNode:
    """Declare a computed field."""
    return VirtualNode(getter=getter, spec=component_spec(component))


def array(
    element: Union[LeafNode, ReferenceNode, SubdocumentNode],
    component: Union[str, Callable, None] = None,
) -> ArrayNode:
    """Declare an array of leaves or references."""
    return ArrayNode(element=element, spec=component_spec(component))


def subdocuments(type_name: str, component: Union[str, Callable, None] = None) -> ArrayNode:
    """Declare an array of embedded ``type_name`` documents.

    ``component`` gates push and remove on the array itself; each element
    is authorized against its own type.
    """
    return ArrayNode(element=SubdocumentNode(type_name), spec=component_spec(component))


def document_type(
    name: str,
    fields: Mapping[str, Any],
    *,
    defaults: Optional[Mapping[str, Iterable[str]]] = None,
    predicate: Optional[Callable[..., Any]] = None,
    from_document: bool = True,
    description: str = "",
) -> DocumentType:
    """Convenience function to create a DocumentType.

    Args:
        name: Type name
        fields: Mapping of field name to schema node (nested mappings are objects)
        defaults: Components held by everyone, per action
        predicate: Optional permission predicate
        from_document: Whether to consult the embedded ACL
        description: Human-readable description
    """
    permissions = PermissionOptions(
        defaults={action: frozenset(c) for action, c in (defaults or {}).items()},
        predicate=predicate,
        from_document=from_document,
    )
    return DocumentType(name=name, root=obj(fields), permissions=permissions, description=description)
