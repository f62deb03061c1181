"""Polling channel that turns Linear activity into chat messages."""

from .dedup import BoundedIdSet, CommentDeduplicator
from .detector import ChangeDetector, ChangeKind, IssueChange
from .filters import AllowListFilter
from .linear_channel import ConnectionState, LinearChannel
from .messages import LINEAR_CHANNEL_JID, NewMessage
from .scheduler import PollScheduler, ScheduledTask
from .state import (
    PROCESSED_ISSUES_KEY,
    InMemoryStateStore,
    ProcessedIssueStore,
    SqliteStateStore,
    StateStore,
)

__all__ = [
    "LinearChannel",
    "ConnectionState",
    "LINEAR_CHANNEL_JID",
    "NewMessage",
    "ChangeDetector",
    "ChangeKind",
    "IssueChange",
    "CommentDeduplicator",
    "BoundedIdSet",
    "AllowListFilter",
    "PollScheduler",
    "ScheduledTask",
    "StateStore",
    "InMemoryStateStore",
    "SqliteStateStore",
    "ProcessedIssueStore",
    "PROCESSED_ISSUES_KEY",
]
