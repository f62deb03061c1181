"""Tests for the author allow-list."""

from linear_bridge.channel.filters import AllowListFilter


class TestAllowListFilter:
    """Test allow-list semantics."""

    def test_empty_list_allows_everyone(self):
        """Test an empty allow-list disables filtering."""
        allow_list = AllowListFilter()
        assert allow_list.enabled is False
        assert allow_list.allows("anyone") is True
        assert allow_list.allows(None) is True

    def test_member_allowed(self):
        """Test listed ids pass."""
        allow_list = AllowListFilter(["user-1", "user-2"])
        assert allow_list.enabled is True
        assert allow_list.allows("user-2") is True

    def test_non_member_blocked(self):
        """Test unlisted ids are blocked."""
        assert AllowListFilter(["user-1"]).allows("user-3") is False

    def test_missing_id_blocked_when_enabled(self):
        """Test an unknown author cannot pass an active filter."""
        assert AllowListFilter(["user-1"]).allows(None) is False
