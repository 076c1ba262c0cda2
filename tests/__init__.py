"""
DocPerm Test Suite.

This package contains:
- unit/: Unit tests per component (in-memory store only)
- integration/: Engine scenarios across users, emails, articles and teams
"""
