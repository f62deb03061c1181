"""Change detection between issue snapshots.

The detector owns the processed-issue record: a mapping of issue id to
the ``updated_at`` last seen for it. An id is tracked while the issue
stays in the assigned snapshot and is dropped as soon as it vanishes,
so an issue that comes back later is reported as new again.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..integrations.models import IssueSnapshot


class ChangeKind(Enum):
    """Classification of an issue relative to the processed record."""

    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    VANISHED = "vanished"


@dataclass(frozen=True)
class IssueChange:
    """One classified issue. ``issue`` is None for vanished ids."""

    kind: ChangeKind
    issue_id: str
    issue: IssueSnapshot | None = None
    previous_updated_at: datetime | None = None


class ChangeDetector:
    """Diffs fresh issue snapshots against the processed record."""

    def __init__(self, record: dict[str, datetime] | None = None):
        self._record: dict[str, datetime] = dict(record or {})

    def load(self, record: dict[str, datetime]) -> None:
        """Replace the processed record (used once at connect time)."""
        self._record = dict(record)

    def snapshot(self) -> dict[str, datetime]:
        """Copy of the processed record, for persistence."""
        return dict(self._record)

    def is_tracked(self, issue_id: str) -> bool:
        return issue_id in self._record

    def __len__(self) -> int:
        return len(self._record)

    def diff(self, issues: Iterable[IssueSnapshot]) -> list[IssueChange]:
        """Classify the current snapshot and update the record.

        New ids are recorded, updated ids get their timestamp refreshed
        and ids missing from ``issues`` are pruned.

        Args:
            issues: Issues currently assigned to the watched account

        Returns:
            One change per current issue, followed by one VANISHED change
            per pruned id
        """
        changes: list[IssueChange] = []
        current_ids: set[str] = set()

        for issue in issues:
            current_ids.add(issue.id)
            previous = self._record.get(issue.id)

            if previous is None:
                self._record[issue.id] = issue.updated_at
                changes.append(IssueChange(ChangeKind.NEW, issue.id, issue))
            elif previous != issue.updated_at:
                self._record[issue.id] = issue.updated_at
                changes.append(
                    IssueChange(ChangeKind.UPDATED, issue.id, issue, previous)
                )
            else:
                changes.append(
                    IssueChange(ChangeKind.UNCHANGED, issue.id, issue, previous)
                )

        for issue_id in [i for i in self._record if i not in current_ids]:
            previous = self._record.pop(issue_id)
            changes.append(
                IssueChange(ChangeKind.VANISHED, issue_id, previous_updated_at=previous)
            )

        return changes

    def rollback(self, change: IssueChange) -> None:
        """Undo the record update made for ``change``.

        The next ``diff`` then reports the issue as NEW or UPDATED again,
        so a change whose handling failed is retried on the following poll.
        """
        if change.kind is ChangeKind.NEW:
            self._record.pop(change.issue_id, None)
        elif change.kind is ChangeKind.UPDATED and change.previous_updated_at is not None:
            self._record[change.issue_id] = change.previous_updated_at
