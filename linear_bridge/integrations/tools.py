"""Tool surface exposed to the agent.

Each tool is a single request/response call against Linear. Tools never
touch the polling channel's reconciliation state; the only link is the
optional ``on_comment_posted`` hook, which lets the channel learn the ids
of comments the bot itself posted.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..bridge_logging import get_logger
from .cache import LookupCache
from .linear import LinearClient
from .models import IssueSnapshot

logger = get_logger()

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ToolError(Exception):
    """Raised when a tool call cannot be completed."""


def content_type_for(path: Path) -> str:
    """Guess a file's content type from its extension."""
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or DEFAULT_CONTENT_TYPE


class LinearTools:
    """Stateless Linear actions: read, update, comment, search, create, upload."""

    def __init__(
        self,
        client: LinearClient,
        on_comment_posted: Callable[[str], None] | None = None,
        cache: LookupCache | None = None,
    ):
        """Initialize the tool surface.

        Args:
            client: Linear API client
            on_comment_posted: Called with the id of each comment posted
            cache: Cache for teams, workflow states and identifier lookups
        """
        self.client = client
        self.on_comment_posted = on_comment_posted
        self._cache = cache or LookupCache()

    def _resolve(self, identifier: str) -> IssueSnapshot:
        issue = self.client.resolve_issue(identifier)
        if issue is None:
            raise ToolError(f"Issue not found: {identifier}")
        return issue

    def _issue_id(self, identifier: str) -> str:
        return self._cache.get_or_load(
            "issue_id", identifier, loader=lambda: self._resolve(identifier).id
        )

    def get_issue(self, identifier: str) -> dict[str, Any]:
        """Fetch an issue's full detail, including its recent comments."""
        issue = self._resolve(identifier)
        result = issue.to_dict()
        result["comments"] = [c.to_dict() for c in self.client.fetch_comments(issue.id)]
        return result

    def update_issue(
        self,
        identifier: str,
        state: str | None = None,
        priority: int | None = None,
        title: str | None = None,
        description: str | None = None,
        assignee_id: str | None = None,
    ) -> dict[str, Any]:
        """Update issue fields. ``state`` is a workflow state name like "In Progress"."""
        changes: dict[str, Any] = {}
        issue: IssueSnapshot | None = None

        if state is not None:
            issue = self._resolve(identifier)
            changes["stateId"] = self._state_id(issue.team_id, state)
        if priority is not None:
            if priority not in range(0, 5):
                raise ToolError(f"Priority must be 0-4, got {priority}")
            changes["priority"] = priority
        if title is not None:
            changes["title"] = title
        if description is not None:
            changes["description"] = description
        if assignee_id is not None:
            changes["assigneeId"] = assignee_id

        if not changes:
            raise ToolError("No fields to update")

        issue_id = issue.id if issue else self._issue_id(identifier)
        updated = self.client.update_issue(issue_id, changes)
        logger.info(f"Updated {updated.identifier or identifier}: {sorted(changes)}")
        return updated.to_dict()

    def _state_id(self, team_id: str | None, state_name: str) -> str:
        # State names are only unique within a team
        if not team_id:
            raise ToolError(f"Cannot resolve state {state_name!r}: issue has no team")
        wanted = state_name.strip().lower()
        for state in self.list_workflow_states(team_id):
            if state["name"].lower() == wanted:
                return state["id"]
        raise ToolError(f"Unknown workflow state: {state_name}")

    def add_comment(
        self, identifier: str, body: str, parent_id: str | None = None
    ) -> dict[str, str]:
        """Comment on an issue, optionally as a reply in a thread."""
        if not body.strip():
            raise ToolError("Comment body is empty")

        issue_id = self._issue_id(identifier)
        comment_id = self.client.post_comment(issue_id, body, parent_id=parent_id)
        if comment_id and self.on_comment_posted:
            self.on_comment_posted(comment_id)
        return {"id": comment_id, "issue_id": issue_id}

    def search_issues(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Search issues by text."""
        if not query.strip():
            raise ToolError("Search query is empty")
        limit = max(1, min(limit, 50))
        return [
            {
                "identifier": issue.identifier,
                "title": issue.title,
                "status": issue.status,
                "priority_label": issue.priority_label,
                "url": issue.url,
            }
            for issue in self.client.search_issues(query, limit=limit)
        ]

    def create_issue(
        self,
        team_id: str,
        title: str,
        description: str | None = None,
        priority: int | None = None,
        assignee_id: str | None = None,
        state_id: str | None = None,
        label_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a new issue in a team."""
        if not title.strip():
            raise ToolError("Issue title is empty")

        fields: dict[str, Any] = {"teamId": team_id, "title": title}
        optional = {
            "description": description,
            "priority": priority,
            "assigneeId": assignee_id,
            "stateId": state_id,
            "labelIds": label_ids,
        }
        fields.update({k: v for k, v in optional.items() if v is not None})

        issue = self.client.create_issue(fields)
        logger.info(f"Created issue {issue.identifier}")
        return issue.to_dict()

    def list_teams(self) -> list[dict[str, str]]:
        """List teams (cached)."""
        return self._cache.get_or_load("teams", loader=self.client.list_teams)

    def list_workflow_states(self, team_id: str | None = None) -> list[dict[str, Any]]:
        """List workflow states for a team or the whole workspace (cached)."""
        return self._cache.get_or_load(
            "workflow_states",
            team_id,
            loader=lambda: self.client.list_workflow_states(team_id),
        )

    def upload_file(
        self, identifier: str, path: str | Path, title: str | None = None
    ) -> dict[str, str]:
        """Upload a local file and attach it to an issue.

        Two steps: request a signed upload URL and PUT the bytes to it,
        then attach the resulting asset URL to the issue.
        """
        file_path = Path(path).expanduser()
        if not file_path.is_file():
            raise ToolError(f"File not found: {file_path}")

        content = file_path.read_bytes()
        content_type = content_type_for(file_path)
        issue_id = self._issue_id(identifier)

        upload = self.client.request_file_upload(
            content_type, file_path.name, len(content)
        )
        self.client.put_file(
            upload["upload_url"], content, content_type, headers=upload["headers"]
        )
        attachment = self.client.create_attachment(
            issue_id, upload["asset_url"], title or file_path.name
        )
        logger.info(f"Attached {file_path.name} to {identifier}")
        return attachment
