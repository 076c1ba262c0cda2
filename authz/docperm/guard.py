"""
Cycle guard for walks over document and team graphs.

Invariants:
    - Keys are identities (document id, team id), never object identity
    - A guard is immutable; extend() returns a new guard, so concurrent
      sibling branches never see each other's markers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class CycleGuard:
    """Identity-keyed visited set, copied on every branch.

    Example:
        >>> guard = CycleGuard()
        >>> child = guard.extend("a")
        >>> "a" in child, "a" in guard
        (True, False)
    """

    visited: frozenset = frozenset()

    @classmethod
    def of(cls, identities: Iterable[str]) -> CycleGuard:
        return cls(frozenset(str(i) for i in identities))

    def extend(self, identity: str) -> CycleGuard:
        return CycleGuard(self.visited | {str(identity)})

    def __contains__(self, identity: object) -> bool:
        return str(identity) in self.visited

    def __len__(self) -> int:
        return len(self.visited)
