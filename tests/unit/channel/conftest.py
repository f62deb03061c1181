"""Shared fixtures for Linear channel tests."""

from datetime import datetime, timezone

import pytest

from linear_bridge.channel.state import InMemoryStateStore
from linear_bridge.integrations.base import TrackerFacade
from linear_bridge.integrations.models import IssueComment, IssueSnapshot, TrackerUser

BOT_USER_ID = "user-bot-123"


def make_issue(**overrides) -> IssueSnapshot:
    """Build an IssueSnapshot with sensible defaults."""
    values = {
        "id": "issue-1",
        "identifier": "ENG-123",
        "title": "Fix the login bug",
        "description": "The login page crashes on Safari",
        "status": "Todo",
        "priority_label": "High",
        "labels": ("bug",),
        "url": "https://linear.app/team/issue/ENG-123",
        "updated_at": datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        "creator_id": "creator-user-1",
    }
    values.update(overrides)
    return IssueSnapshot(**values)


def make_comment(
    comment_id: str,
    body: str = "Any progress on this?",
    author_id: str | None = "user-other-456",
    display_name: str = "Alice",
) -> IssueComment:
    """Build an IssueComment; ``author_id=None`` means unresolvable author."""
    author = None
    if author_id is not None:
        author = TrackerUser(id=author_id, name=display_name.lower(), display_name=display_name)
    return IssueComment(
        id=comment_id,
        body=body,
        created_at=datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc),
        author=author,
    )


class FakeTracker(TrackerFacade):
    """In-memory tracker: tests set ``issues`` and ``comments`` directly."""

    def __init__(self):
        self.viewer = TrackerUser(id=BOT_USER_ID, name="nanoclaw", display_name="NanoClaw Bot")
        self.issues: list[IssueSnapshot] = []
        self.comments: dict[str, list[IssueComment]] = {}
        self.viewer_error: Exception | None = None
        self.issues_error: Exception | None = None
        self.comment_errors: dict[str, Exception] = {}
        self.posted: list[tuple[str, str, str | None]] = []
        self.closed = 0

    def fetch_viewer(self) -> TrackerUser:
        if self.viewer_error:
            raise self.viewer_error
        return self.viewer

    def fetch_assigned_issues(self, user_id: str) -> list[IssueSnapshot]:
        if self.issues_error:
            error, self.issues_error = self.issues_error, None
            raise error
        return list(self.issues)

    def fetch_comments(self, issue_id: str, limit: int = 20) -> list[IssueComment]:
        if issue_id in self.comment_errors:
            raise self.comment_errors[issue_id]
        return list(self.comments.get(issue_id, []))[-limit:]

    def resolve_issue(self, identifier: str) -> IssueSnapshot | None:
        for issue in self.issues:
            if identifier in (issue.id, issue.identifier):
                return issue
        return None

    def post_comment(self, issue_id: str, body: str, parent_id: str | None = None) -> str:
        self.posted.append((issue_id, body, parent_id))
        return f"comment-posted-{len(self.posted)}"

    def close(self) -> None:
        self.closed += 1


class ManualTask:
    """Scheduled-task handle whose runs are triggered by ``tick()``."""

    def __init__(self, interval: float, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self, timeout: float | None = None) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler stand-in: ``tick()`` plays the role of one elapsed interval."""

    def __init__(self):
        self.tasks: list[ManualTask] = []

    def start(self, interval: float, callback) -> ManualTask:
        task = ManualTask(interval, callback)
        self.tasks.append(task)
        return task

    def tick(self, count: int = 1) -> None:
        for _ in range(count):
            for task in list(self.tasks):
                if not task.cancelled:
                    task.callback()


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def issue_factory():
    return make_issue


@pytest.fixture
def comment_factory():
    return make_comment
