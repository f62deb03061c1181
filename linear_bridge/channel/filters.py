"""Author allow-list for issue and comment delivery."""

from __future__ import annotations

from collections.abc import Iterable


class AllowListFilter:
    """Gates delivery on the authoring user's id.

    An empty allow-list disables filtering: every author passes.
    """

    def __init__(self, allowed_ids: Iterable[str] = ()):
        self.allowed_ids = frozenset(allowed_ids)

    @property
    def enabled(self) -> bool:
        return bool(self.allowed_ids)

    def allows(self, user_id: str | None) -> bool:
        """Return True if ``user_id`` may trigger delivery."""
        if not self.allowed_ids:
            return True
        return user_id is not None and user_id in self.allowed_ids

    def __repr__(self) -> str:
        return f"AllowListFilter({sorted(self.allowed_ids)!r})"
