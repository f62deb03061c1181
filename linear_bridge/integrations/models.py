"""Data models for the Linear integration.

This module defines the tracker-neutral snapshots the reconciliation
engine works with, plus the helpers that build them from Linear
GraphQL nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Priority labels for Linear (0 = no priority, 1 = urgent, 4 = low)
LINEAR_PRIORITY_LABELS: dict[int, str] = {
    0: "No priority",
    1: "Urgent",
    2: "High",
    3: "Medium",
    4: "Low",
}

# Workflow state types that never appear in the assigned snapshot
CLOSED_STATE_TYPES: tuple[str, ...] = ("completed", "canceled")


@dataclass(frozen=True)
class TrackerUser:
    """A tracker account (issue creator, comment author, viewer)."""

    id: str
    name: str = ""
    display_name: str = ""

    @property
    def label(self) -> str:
        """Best human-readable name for the user."""
        return self.display_name or self.name or self.id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"id": self.id, "name": self.name, "display_name": self.display_name}


@dataclass(frozen=True)
class IssueComment:
    """A comment on an issue. ``author`` is None when it cannot be resolved."""

    id: str
    body: str
    created_at: datetime | None = None
    author: TrackerUser | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "body": self.body,
            "created_at": format_timestamp(self.created_at) if self.created_at else None,
            "author": self.author.to_dict() if self.author else None,
        }


@dataclass(frozen=True)
class IssueSnapshot:
    """Point-in-time view of an issue assigned to the watched account.

    A new snapshot is produced on every poll; snapshots are never
    mutated, the tracked record is replaced instead.
    """

    id: str  # Linear UUID
    identifier: str  # Human-readable (e.g., "ENG-123")
    title: str
    updated_at: datetime
    description: str = ""
    status: str = ""
    priority_label: str | None = None
    labels: tuple[str, ...] = field(default_factory=tuple)
    url: str = ""
    creator_id: str | None = None

    # Extra detail used by the tool surface
    priority: int | None = None
    state_type: str | None = None
    team_id: str | None = None
    assignee: TrackerUser | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to full dictionary for tool responses."""
        return {
            "id": self.id,
            "identifier": self.identifier,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "priority_label": self.priority_label,
            "labels": list(self.labels),
            "url": self.url,
            "updated_at": format_timestamp(self.updated_at),
            "creator_id": self.creator_id,
            "team_id": self.team_id,
            "assignee": self.assignee.to_dict() if self.assignee else None,
        }


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from Linear into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: ``2024-06-01T12:00:00.000Z``
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def priority_label_for(priority: int | None) -> str | None:
    """Map a numeric Linear priority to its label."""
    if priority is None:
        return None
    return LINEAR_PRIORITY_LABELS.get(priority)


def parse_user(node: dict[str, Any] | None) -> TrackerUser | None:
    """Parse a Linear user node; returns None when missing or without an id."""
    if not node or not node.get("id"):
        return None
    return TrackerUser(
        id=node["id"],
        name=node.get("name") or "",
        display_name=node.get("displayName") or "",
    )


def parse_issue(node: dict[str, Any]) -> IssueSnapshot:
    """Parse a Linear issue node into an IssueSnapshot.

    Args:
        node: Raw issue data from GraphQL

    Returns:
        Parsed IssueSnapshot
    """
    state = node.get("state") or {}
    labels_data = (node.get("labels") or {}).get("nodes", [])
    labels = tuple(label.get("name", "") for label in labels_data if label.get("name"))

    priority = node.get("priority")
    if priority is not None:
        priority = int(priority)
    priority_label = node.get("priorityLabel") or priority_label_for(priority)

    creator = node.get("creator") or {}
    team = node.get("team") or {}

    return IssueSnapshot(
        id=node.get("id", ""),
        identifier=node.get("identifier", ""),
        title=node.get("title", ""),
        description=node.get("description") or "",
        status=state.get("name", ""),
        state_type=state.get("type"),
        priority=priority,
        priority_label=priority_label,
        labels=labels,
        url=node.get("url", ""),
        updated_at=parse_timestamp(node.get("updatedAt")) or datetime.now(timezone.utc),
        creator_id=creator.get("id"),
        team_id=team.get("id"),
        assignee=parse_user(node.get("assignee")),
    )


def parse_comment(node: dict[str, Any]) -> IssueComment:
    """Parse a Linear comment node.

    Args:
        node: Raw comment data from GraphQL

    Returns:
        Parsed IssueComment
    """
    return IssueComment(
        id=node.get("id", ""),
        body=node.get("body") or "",
        created_at=parse_timestamp(node.get("createdAt")),
        author=parse_user(node.get("user")),
    )
