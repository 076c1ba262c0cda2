"""
Component resolution for DocPerm.

The components a principal holds on a document for an action are the union
of three sources:
- static defaults (engine-wide and per document type)
- the document type's predicate, which may perform I/O
- the document's embedded ACL, whose teams are expanded recursively

Invariants:
    - Sources run concurrently; any failure aborts the whole resolution
    - Results are never cached across calls
    - An anonymous principal (None) never matches an ACL entry
    - A predicate result that is not a component or a collection of
      components is a ResolverError, like a predicate that raises

How to change safely:
    - New sources must be added to the same fan-out so failures stay atomic
    - Keep ACL matching on expanded principal ids, never on team ids
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .concurrency import gather_all
from .config import EngineConfig
from .errors import PermissionDenied, ResolverError
from .model import Document
from .schema import SchemaIndex
from .teams import TeamExpander

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPermission:
    """An embedded ACL entry with its team expanded.

    Attributes:
        action: Action the grant applies to
        component: Component granted
        users: Principal ids the team expands to
    """

    action: str
    component: str
    users: frozenset


class ComponentResolver:
    """Computes the ComponentSet of a principal for a document and action.

    Example:
        >>> resolver = ComponentResolver(index, TeamExpander(store))
        >>> await resolver.resolve_components(luke, "luke", "read")
        frozenset({'info', 'settings', 'contactVisible'})
    """

    def __init__(
        self,
        schema: SchemaIndex,
        teams: TeamExpander,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.schema = schema
        self.teams = teams
        self.config = config or EngineConfig()

    async def resolve_components(
        self,
        document: Document,
        principal: Optional[str],
        action: str,
    ) -> frozenset:
        """Union of all component sources for (document, principal, action).

        Raises:
            ResolverError: If the predicate or a team lookup fails
        """
        options = self.schema.require(document.type_name).permissions
        components = set(self.config.defaults_for(action) | options.defaults_for(action))

        sources = []
        if options.predicate is not None:
            sources.append(self._from_predicate(options.predicate, document, principal, action))
        if options.from_document and document.acl:
            sources.append(self._from_acl(document, principal, action))

        for granted in await gather_all(sources):
            components |= granted

        logger.debug(
            f"Resolved {action} components for {principal} on "
            f"{document.type_name} {document.id}: {sorted(components)}"
        )
        return frozenset(components)

    async def _from_predicate(
        self,
        predicate: Callable[..., Any],
        document: Document,
        principal: Optional[str],
        action: str,
    ) -> frozenset:
        try:
            result = predicate(document, principal, action)
            if inspect.isawaitable(result):
                result = await result
        except ResolverError:
            raise
        except Exception as e:
            raise ResolverError(
                f"Permission predicate failed for {document.type_name} {document.id}: {e}",
                document_id=document.id,
                source="predicate",
            ) from e

        if result is None:
            return frozenset()
        if isinstance(result, str):
            return frozenset({result})
        if isinstance(result, (set, frozenset, list, tuple)) and all(
            isinstance(component, str) for component in result
        ):
            return frozenset(result)
        raise ResolverError(
            f"Permission predicate for {document.type_name} {document.id} returned "
            f"{type(result).__name__}, expected a component or a collection of components",
            document_id=document.id,
            source="predicate",
        )

    async def _from_acl(
        self,
        document: Document,
        principal: Optional[str],
        action: str,
    ) -> frozenset:
        if principal is None:
            return frozenset()
        entries = [entry for entry in document.acl if entry.action == action]
        members = await gather_all(self.teams.expand_users(entry.team) for entry in entries)
        return frozenset(
            entry.component
            for entry, users in zip(entries, members)
            if str(principal) in users
        )

    async def get_permissions(self, document: Document) -> List[ResolvedPermission]:
        """All embedded ACL entries, teams expanded, in ACL order.

        Raises:
            ResolverError: If a team lookup fails
        """
        members = await gather_all(self.teams.expand_users(entry.team) for entry in document.acl)
        return [
            ResolvedPermission(entry.action, entry.component, frozenset(users))
            for entry, users in zip(document.acl, members)
        ]

    async def has_permission(
        self,
        document: Document,
        principal: Optional[str],
        action: str,
        component: str,
    ) -> bool:
        """Whether the embedded ACL grants ``component`` for ``action`` to ``principal``."""
        if principal is None:
            return False
        for permission in await self.get_permissions(document):
            if (
                permission.action == action
                and permission.component == component
                and str(principal) in permission.users
            ):
                return True
        return False

    async def assert_permission(
        self,
        document: Document,
        principal: Optional[str],
        action: str,
        component: str,
    ) -> None:
        """Raise PermissionDenied unless has_permission() holds."""
        if not await self.has_permission(document, principal, action, component):
            raise PermissionDenied(None, principal=principal, component=component)
