"""Linear issue tracker integration.

This module provides a client for the Linear GraphQL API. It implements
the ``TrackerFacade`` used by the polling channel and the lower-level
mutations used by the tool surface.
"""

from __future__ import annotations

import os
from typing import Any

import requests

from ..bridge_logging import get_logger
from .base import IntegrationClient, TrackerError, TrackerFacade
from .models import (
    CLOSED_STATE_TYPES,
    IssueComment,
    IssueSnapshot,
    TrackerUser,
    parse_comment,
    parse_issue,
    parse_user,
)

logger = get_logger()

ISSUE_FIELDS = """
      id
      identifier
      title
      description
      url
      priority
      priorityLabel
      updatedAt
      state {
        name
        type
      }
      labels {
        nodes {
          name
        }
      }
      creator {
        id
      }
      team {
        id
      }
      assignee {
        id
        name
        displayName
      }
"""


class LinearClient(IntegrationClient, TrackerFacade):
    """Client for Linear GraphQL API.

    Provides the read/reply operations of the polling channel plus the
    mutations behind the tool surface, with rate limiting and retries.
    """

    GRAPHQL_ENDPOINT = "https://api.linear.app/graphql"
    REQUEST_TIMEOUT = 30

    VIEWER_QUERY = """
    query Viewer {
      viewer {
        id
        name
        displayName
      }
    }
    """

    USERS_QUERY = """
    query Users {
      users {
        nodes {
          id
          name
          displayName
          email
        }
      }
    }
    """

    ASSIGNED_ISSUES_QUERY = (
        """
    query AssignedIssues($userId: String!, $first: Int!, $closedTypes: [String!]) {
      user(id: $userId) {
        assignedIssues(
          first: $first
          filter: { state: { type: { nin: $closedTypes } } }
        ) {
          nodes {"""
        + ISSUE_FIELDS
        + """
          }
        }
      }
    }
    """
    )

    COMMENTS_QUERY = """
    query IssueComments($id: String!, $first: Int!) {
      issue(id: $id) {
        comments(first: $first, orderBy: createdAt) {
          nodes {
            id
            body
            createdAt
            user {
              id
              name
              displayName
            }
          }
        }
      }
    }
    """

    GET_ISSUE_QUERY = (
        """
    query GetIssue($id: String!) {
      issue(id: $id) {"""
        + ISSUE_FIELDS
        + """
      }
    }
    """
    )

    SEARCH_QUERY = (
        """
    query SearchIssues($term: String!, $first: Int!) {
      searchIssues(term: $term, first: $first) {
        nodes {"""
        + ISSUE_FIELDS
        + """
        }
      }
    }
    """
    )

    LIST_TEAMS_QUERY = """
    query ListTeams {
      teams {
        nodes {
          id
          name
          key
        }
      }
    }
    """

    WORKFLOW_STATES_QUERY = """
    query WorkflowStates($filter: WorkflowStateFilter) {
      workflowStates(filter: $filter) {
        nodes {
          id
          name
          type
          position
          team {
            id
            key
          }
        }
      }
    }
    """

    COMMENT_CREATE_MUTATION = """
    mutation CommentCreate($input: CommentCreateInput!) {
      commentCreate(input: $input) {
        success
        comment {
          id
        }
      }
    }
    """

    ISSUE_UPDATE_MUTATION = (
        """
    mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
      issueUpdate(id: $id, input: $input) {
        success
        issue {"""
        + ISSUE_FIELDS
        + """
        }
      }
    }
    """
    )

    ISSUE_CREATE_MUTATION = (
        """
    mutation IssueCreate($input: IssueCreateInput!) {
      issueCreate(input: $input) {
        success
        issue {"""
        + ISSUE_FIELDS
        + """
        }
      }
    }
    """
    )

    FILE_UPLOAD_MUTATION = """
    mutation FileUpload($contentType: String!, $filename: String!, $size: Int!) {
      fileUpload(contentType: $contentType, filename: $filename, size: $size) {
        success
        uploadFile {
          uploadUrl
          assetUrl
          headers {
            key
            value
          }
        }
      }
    }
    """

    ATTACHMENT_CREATE_MUTATION = """
    mutation AttachmentCreate($input: AttachmentCreateInput!) {
      attachmentCreate(input: $input) {
        success
        attachment {
          id
          url
          title
        }
      }
    }
    """

    def __init__(
        self,
        api_key: str | None = None,
        max_retries: int = 3,
        assigned_page_size: int = 50,
    ):
        """Initialize Linear client.

        Args:
            api_key: Linear API key (defaults to LINEAR_API_KEY env var)
            max_retries: Maximum retry attempts
            assigned_page_size: Maximum assigned issues fetched per poll
        """
        api_key = api_key or os.environ.get("LINEAR_API_KEY", "")
        if not api_key:
            raise ValueError(
                "Linear API key required. Set LINEAR_API_KEY environment variable "
                "or pass api_key parameter."
            )

        super().__init__(
            api_key=api_key,
            max_retries=max_retries,
            requests_per_minute=60,  # Linear rate limit
        )

        self.assigned_page_size = assigned_page_size
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": api_key,
                "Content-Type": "application/json",
            }
        )

    def _execute_graphql(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Execute a GraphQL query against the Linear API.

        Args:
            query: GraphQL query string
            variables: Query variables

        Returns:
            Response data

        Raises:
            requests.HTTPError: If the HTTP request fails
            TrackerError: If the API returns GraphQL errors
        """

        def _do_request() -> dict[str, Any]:
            response = self._session.post(
                self.GRAPHQL_ENDPOINT,
                json={"query": query, "variables": variables or {}},
                timeout=self.REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            result = response.json()

            if result.get("errors"):
                error_msg = result["errors"][0].get("message", "Unknown GraphQL error")
                raise TrackerError(f"GraphQL error: {error_msg}")

            return result.get("data") or {}

        return self._execute_with_retry(_do_request)

    @staticmethod
    def _require_success(data: dict[str, Any], field: str) -> dict[str, Any]:
        payload = data.get(field) or {}
        if not payload.get("success"):
            raise TrackerError(f"{field} returned success=false")
        return payload

    # ------------------------------------------------------------------
    # TrackerFacade
    # ------------------------------------------------------------------

    def fetch_viewer(self) -> TrackerUser:
        """Return the user behind the API key."""
        data = self._execute_graphql(self.VIEWER_QUERY)
        viewer = parse_user(data.get("viewer"))
        if viewer is None:
            raise TrackerError("Linear API returned no viewer")
        return viewer

    def fetch_assigned_issues(self, user_id: str) -> list[IssueSnapshot]:
        """Return non-completed, non-canceled issues assigned to ``user_id``."""
        data = self._execute_graphql(
            self.ASSIGNED_ISSUES_QUERY,
            {
                "userId": user_id,
                "first": self.assigned_page_size,
                "closedTypes": list(CLOSED_STATE_TYPES),
            },
        )
        user = data.get("user")
        if user is None:
            raise TrackerError(f"Linear user not found: {user_id}")
        nodes = (user.get("assignedIssues") or {}).get("nodes", [])
        return [parse_issue(node) for node in nodes]

    def fetch_comments(self, issue_id: str, limit: int = 20) -> list[IssueComment]:
        """Return the most recent page of comments, oldest first."""
        data = self._execute_graphql(
            self.COMMENTS_QUERY, {"id": issue_id, "first": limit}
        )
        issue = data.get("issue") or {}
        nodes = (issue.get("comments") or {}).get("nodes", [])
        comments = [parse_comment(node) for node in nodes]
        return sorted(
            comments,
            key=lambda c: c.created_at.timestamp() if c.created_at else 0.0,
        )

    def resolve_issue(self, identifier: str) -> IssueSnapshot | None:
        """Get an issue by identifier (e.g., "ENG-123") or UUID.

        Returns:
            The issue, or None if Linear reports it does not exist
        """
        try:
            data = self._execute_graphql(self.GET_ISSUE_QUERY, {"id": identifier})
        except TrackerError as e:
            if "not found" in str(e).lower():
                return None
            raise

        issue_data = data.get("issue")
        if not issue_data:
            return None
        return parse_issue(issue_data)

    def post_comment(
        self, issue_id: str, body: str, parent_id: str | None = None
    ) -> str:
        """Post a comment (optionally as a thread reply) and return its id."""
        comment_input: dict[str, Any] = {"issueId": issue_id, "body": body}
        if parent_id:
            comment_input["parentId"] = parent_id

        data = self._execute_graphql(
            self.COMMENT_CREATE_MUTATION, {"input": comment_input}
        )
        payload = self._require_success(data, "commentCreate")
        comment_id = (payload.get("comment") or {}).get("id", "")
        logger.debug(f"Posted comment {comment_id} on issue {issue_id}")
        return comment_id

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    # ------------------------------------------------------------------
    # Tool surface operations
    # ------------------------------------------------------------------

    def list_users(self) -> list[dict[str, str]]:
        """List workspace users with id, name, display name and email."""
        data = self._execute_graphql(self.USERS_QUERY)
        return [
            {
                "id": user.get("id", ""),
                "name": user.get("name") or "",
                "display_name": user.get("displayName") or "",
                "email": user.get("email") or "",
            }
            for user in (data.get("users") or {}).get("nodes", [])
        ]

    def search_issues(self, term: str, limit: int = 10) -> list[IssueSnapshot]:
        """Full-text search over issues."""
        data = self._execute_graphql(self.SEARCH_QUERY, {"term": term, "first": limit})
        nodes = (data.get("searchIssues") or {}).get("nodes", [])
        return [parse_issue(node) for node in nodes]

    def update_issue(self, issue_id: str, changes: dict[str, Any]) -> IssueSnapshot:
        """Apply an IssueUpdateInput to an issue."""
        data = self._execute_graphql(
            self.ISSUE_UPDATE_MUTATION, {"id": issue_id, "input": changes}
        )
        payload = self._require_success(data, "issueUpdate")
        return parse_issue(payload.get("issue") or {})

    def create_issue(self, fields: dict[str, Any]) -> IssueSnapshot:
        """Create an issue from an IssueCreateInput."""
        data = self._execute_graphql(self.ISSUE_CREATE_MUTATION, {"input": fields})
        payload = self._require_success(data, "issueCreate")
        return parse_issue(payload.get("issue") or {})

    def list_teams(self) -> list[dict[str, str]]:
        """List available Linear teams.

        Returns:
            List of teams with id, name, and key
        """
        data = self._execute_graphql(self.LIST_TEAMS_QUERY)
        teams = (data.get("teams") or {}).get("nodes", [])

        return [
            {
                "id": team.get("id", ""),
                "name": team.get("name", ""),
                "key": team.get("key", ""),
            }
            for team in teams
        ]

    def list_workflow_states(self, team_id: str | None = None) -> list[dict[str, Any]]:
        """List workflow states, optionally for one team, ordered by position."""
        variables: dict[str, Any] = {}
        if team_id:
            variables["filter"] = {"team": {"id": {"eq": team_id}}}

        data = self._execute_graphql(self.WORKFLOW_STATES_QUERY, variables)
        states = (data.get("workflowStates") or {}).get("nodes", [])
        results = [
            {
                "id": state.get("id", ""),
                "name": state.get("name", ""),
                "type": state.get("type", ""),
                "position": state.get("position", 0),
                "team_id": (state.get("team") or {}).get("id", ""),
                "team_key": (state.get("team") or {}).get("key", ""),
            }
            for state in states
        ]
        return sorted(results, key=lambda s: (s["team_key"], s["position"]))

    def request_file_upload(
        self, content_type: str, filename: str, size: int
    ) -> dict[str, Any]:
        """Ask Linear for a signed upload URL.

        Returns:
            Dict with ``upload_url``, ``asset_url`` and ``headers``
        """
        data = self._execute_graphql(
            self.FILE_UPLOAD_MUTATION,
            {"contentType": content_type, "filename": filename, "size": size},
        )
        payload = self._require_success(data, "fileUpload")
        upload = payload.get("uploadFile") or {}
        if not upload.get("uploadUrl") or not upload.get("assetUrl"):
            raise TrackerError("fileUpload returned no upload URL")
        return {
            "upload_url": upload["uploadUrl"],
            "asset_url": upload["assetUrl"],
            "headers": {h["key"]: h["value"] for h in upload.get("headers") or []},
        }

    def put_file(
        self,
        upload_url: str,
        content: bytes,
        content_type: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        """PUT file bytes to a signed upload URL.

        The signed URL carries its own credentials, so the API key is not sent.
        """
        put_headers = {
            "Content-Type": content_type,
            "Cache-Control": "public, max-age=31536000",
        }
        put_headers.update(headers or {})

        def _do_put() -> None:
            response = requests.put(
                upload_url,
                data=content,
                headers=put_headers,
                timeout=self.REQUEST_TIMEOUT,
            )
            response.raise_for_status()

        self._execute_with_retry(_do_put)

    def create_attachment(
        self, issue_id: str, url: str, title: str
    ) -> dict[str, str]:
        """Attach a URL to an issue."""
        data = self._execute_graphql(
            self.ATTACHMENT_CREATE_MUTATION,
            {"input": {"issueId": issue_id, "url": url, "title": title}},
        )
        payload = self._require_success(data, "attachmentCreate")
        attachment = payload.get("attachment") or {}
        return {
            "id": attachment.get("id", ""),
            "url": attachment.get("url", url),
            "title": attachment.get("title", title),
        }
