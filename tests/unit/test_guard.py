"""
Unit tests for CycleGuard.
"""

from authz.docperm.guard import CycleGuard


class TestCycleGuard:
    """Tests for CycleGuard."""

    def test_empty_guard(self):
        guard = CycleGuard()
        assert len(guard) == 0
        assert "a" not in guard

    def test_extend_is_copy_on_branch(self):
        """extend() returns a new guard and leaves the original untouched."""
        root = CycleGuard()
        left = root.extend("a")
        right = root.extend("b")

        assert "a" in left and "b" not in left
        assert "b" in right and "a" not in right
        assert len(root) == 0

    def test_keys_are_identities(self):
        """Membership is by string identity."""
        guard = CycleGuard.of([1, "two"])

        assert 1 in guard
        assert "1" in guard
        assert "two" in guard
        assert len(guard) == 2

    def test_guards_compare_by_content(self):
        assert CycleGuard().extend("a").extend("b") == CycleGuard.of(["b", "a"])
