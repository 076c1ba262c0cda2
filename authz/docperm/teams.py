"""
Team membership expansion.

A team has direct users and member teams; member teams may themselves
contain teams, and the graph may cycle. expand_users() flattens a team
into the set of principal ids it grants.

Invariants:
    - A team already on the current path contributes nothing (cycles terminate)
    - The visited set is copied per branch, never shared between siblings
    - Duplicate users reached over several branches collapse in the set union
    - Lookup failures are ResolverError; there is no partial result

How to change safely:
    - Keep expansion free of caching; memberships change between calls
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Set, Union

from .concurrency import gather_all
from .errors import ResolverError
from .guard import CycleGuard
from .model import Team
from .store.base import DocumentStore

logger = logging.getLogger(__name__)

TeamRef = Union[str, Team]


def team_id_of(team: TeamRef) -> str:
    return team.id if isinstance(team, Team) else str(team)


def _principal_id(user: Any) -> str:
    # populated user objects carry their id
    return str(getattr(user, "id", user))


class TeamExpander:
    """Resolves teams into flat sets of member principals.

    Example:
        >>> expander = TeamExpander(store)
        >>> await expander.expand_users("editors")
        {'hondanz', 'halligalli'}
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def expand_users(self, team: TeamRef, visited: Optional[CycleGuard] = None) -> Set[str]:
        """Flatten ``team`` into its member principal ids.

        Args:
            team: Team id or populated Team
            visited: Teams already on the current expansion path

        Returns:
            Set of principal ids

        Raises:
            ResolverError: If a team cannot be looked up
        """
        visited = visited if visited is not None else CycleGuard()
        team_id = team_id_of(team)
        if team_id in visited:
            logger.debug(f"Team cycle detected at {team_id}, stopping expansion")
            return set()

        resolved = await self._lookup(team)
        branch = visited.extend(team_id)

        users = {_principal_id(user) for user in resolved.users}
        nested = await gather_all(
            self.expand_users(child, branch)
            for child in resolved.teams
            if team_id_of(child) not in branch
        )
        for member_users in nested:
            users |= member_users
        return users

    async def _lookup(self, team: TeamRef) -> Team:
        if isinstance(team, Team):
            return team
        try:
            found = await self.store.get_team(team)
        except ResolverError:
            raise
        except Exception as e:
            raise ResolverError(f"Team lookup failed for '{team}': {e}", source="team") from e
        if found is None:
            raise ResolverError(f"Team '{team}' not found", source="team")
        return found
