"""Linear integration for the channel bridge.

This package provides the Linear API client, the tracker-neutral data
models the polling channel consumes, and the agent tool surface.
"""

from .base import IntegrationClient, TrackerError, TrackerFacade
from .cache import LookupCache
from .linear import LinearClient
from .models import (
    LINEAR_PRIORITY_LABELS,
    IssueComment,
    IssueSnapshot,
    TrackerUser,
    format_timestamp,
    parse_comment,
    parse_issue,
    parse_timestamp,
)
from .tools import LinearTools, ToolError

__all__ = [
    # Clients
    "TrackerFacade",
    "IntegrationClient",
    "LinearClient",
    "TrackerError",
    # Tools
    "LinearTools",
    "ToolError",
    # Cache
    "LookupCache",
    # Models
    "IssueSnapshot",
    "IssueComment",
    "TrackerUser",
    "LINEAR_PRIORITY_LABELS",
    # Utilities
    "format_timestamp",
    "parse_timestamp",
    "parse_issue",
    "parse_comment",
]
