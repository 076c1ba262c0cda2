"""
In-process document model for DocPerm.

This module defines the handles the engine walks over:
- Document: identity, type name, nested data, embedded ACL, owner (for subdocuments)
- Team: direct users plus member teams (may cycle)
- AclEntry: grants ``component`` for ``action`` to every member of ``team``
- UNSET: sentinel for "no value"

Invariants:
    - Document identity is stable and is what cycle detection keys on
    - Arrays of subdocuments hold Document instances whose parent is the
      owning document; populated references hold Documents owned elsewhere
    - to_dict() never follows populated references, so it terminates on
      cyclic reference graphs
    - implicit_paths names the arrays that element-wise pushes created; an
      explicit set or unset of such a path (or an ancestor) clears the mark

How to change safely:
    - Keep get/set path semantics dotted and schema-agnostic
    - Hosts with their own store adapt their objects to this interface
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Union


class _Unset:
    """Marker for an absent value."""

    _instance: Optional[_Unset] = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class Team:
    """A team of principals.

    Attributes:
        id: Team identity
        users: Direct member principal ids
        teams: Member teams, as ids or populated Team objects
        name: Human-readable name
    """

    id: str
    users: List[str] = field(default_factory=list)
    teams: List[Union[str, Team]] = field(default_factory=list)
    name: str = ""


@dataclass(frozen=True)
class AclEntry:
    """ACL entry granting a component to a team for one action.

    Attributes:
        team: Team id or populated Team
        action: Action the grant applies to (read, write, ...)
        component: Component granted
    """

    team: Union[str, Team]
    action: str
    component: str

    @property
    def team_id(self) -> str:
        return self.team.id if isinstance(self.team, Team) else self.team

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"team": self.team_id, "action": self.action, "component": self.component}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AclEntry:
        """Create from dictionary representation."""
        return cls(team=data["team"], action=data["action"], component=data["component"])


class Document:
    """A document instance of a registered document type.

    Attributes:
        id: Stable identity
        type_name: Name of the document type in the SchemaIndex
        acl: Embedded ACL entries
        parent: Owning document when this is an embedded subdocument

    Example:
        >>> user = Document("User", {"name": "Luke", "settings": {"rememberMe": True}})
        >>> user.get("settings.rememberMe")
        True
        >>> email = user.new_child("Email", {"address": "luke@skywalk.er"})
        >>> user.set("emails", [email])
    """

    def __init__(
        self,
        type_name: str,
        data: Optional[Dict[str, Any]] = None,
        *,
        id: Optional[str] = None,
        acl: Optional[List[AclEntry]] = None,
        parent: Optional[Document] = None,
    ) -> None:
        self.id = str(id) if id is not None else uuid.uuid4().hex
        self.type_name = type_name
        self.acl: List[AclEntry] = list(acl or [])
        self.parent = parent
        self._data: Dict[str, Any] = _copy_tree(data or {})
        self.implicit_paths: Set[str] = set()

    @property
    def root(self) -> Document:
        """Top-level owner (self for top-level documents)."""
        doc = self
        while doc.parent is not None:
            doc = doc.parent
        return doc

    def new_child(
        self,
        type_name: str,
        data: Optional[Dict[str, Any]] = None,
        *,
        id: Optional[str] = None,
    ) -> Document:
        """Create a subdocument owned by this document (not yet attached)."""
        return Document(type_name, data, id=id, parent=self)

    def get(self, path: str, default: Any = UNSET) -> Any:
        """Value at a dotted path, or ``default``."""
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def has(self, path: str) -> bool:
        return self.get(path) is not UNSET

    def set(self, path: str, value: Any) -> None:
        """Set a dotted path, creating intermediate objects. UNSET removes it."""
        if value is UNSET:
            self.unset(path)
            return
        self._forget_implicit(path)
        parts = path.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def unset(self, path: str) -> None:
        self._forget_implicit(path)
        parts = path.split(".")
        node: Any = self._data
        for part in parts[:-1]:
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                return
        if isinstance(node, dict):
            node.pop(parts[-1], None)

    def keys(self) -> Iterator[str]:
        return iter(self._data)

    def _forget_implicit(self, path: str) -> None:
        prefix = path + "."
        self.implicit_paths = {
            p for p in self.implicit_paths if p != path and not p.startswith(prefix)
        }

    def to_dict(self) -> Dict[str, Any]:
        """Deep snapshot of the stored state.

        Owned subdocuments are expanded, populated references collapse to
        ``{"$ref": id}``.
        """
        return {
            "id": self.id,
            "type": self.type_name,
            "data": _snapshot(self._data, self),
            "acl": [entry.to_dict() for entry in self.acl],
        }

    def __repr__(self) -> str:
        return f"Document(type_name={self.type_name!r}, id={self.id!r})"


def _copy_tree(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy_tree(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_tree(v) for v in value]
    return value


def _snapshot(value: Any, owner: Document) -> Any:
    if isinstance(value, Document):
        if value.parent is owner:
            return value.to_dict()
        return {"$ref": value.id}
    if isinstance(value, dict):
        return {k: _snapshot(v, owner) for k, v in value.items()}
    if isinstance(value, list):
        return [_snapshot(v, owner) for v in value]
    return value
