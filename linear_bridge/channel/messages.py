"""Normalized inbound messages produced by the Linear channel."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..integrations.models import IssueComment, IssueSnapshot, format_timestamp

CHANNEL_NAME = "linear"
CHANNEL_JID_PREFIX = "linear:"
LINEAR_CHANNEL_JID = "linear:__channel__"
CHANNEL_DISPLAY_NAME = "Linear Issues"

SYSTEM_SENDER = "linear"
SYSTEM_SENDER_NAME = "Linear"
NO_DESCRIPTION = "(no description)"


@dataclass(frozen=True)
class NewMessage:
    """A message handed to the router as if a user had sent it."""

    id: str
    chat_jid: str
    sender: str
    sender_name: str
    content: str
    timestamp: str  # ISO-8601
    is_from_me: bool = False
    is_bot_message: bool = False

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _epoch_ms(issue: IssueSnapshot) -> int:
    return int(issue.updated_at.timestamp() * 1000)


def format_issue_content(
    issue: IssueSnapshot, assistant_name: str, trigger: str = "New issue assigned"
) -> str:
    """Render the message body for an issue delivery."""
    lines = [
        f"@{assistant_name}",
        f"[Linear] {trigger}",
        f"Issue: {issue.identifier} — {issue.title}",
        f"Status: {issue.status}",
        f"Priority: {issue.priority_label or 'None'}",
    ]
    if issue.labels:
        lines.append(f"Labels: {', '.join(issue.labels)}")
    lines.append(f"URL: {issue.url}")
    lines.append("")
    lines.append(issue.description or NO_DESCRIPTION)
    return "\n".join(lines)


def format_comment_content(
    issue: IssueSnapshot, comment: IssueComment, assistant_name: str
) -> str:
    """Render the message body for a new comment."""
    author = comment.author.label if comment.author else "Unknown"
    return (
        f"@{assistant_name} New comment on {issue.identifier} "
        f"(comment {comment.id}) from {author}:\n\n{comment.body}"
    )


def issue_message(issue: IssueSnapshot, assistant_name: str) -> NewMessage:
    """Build the message for a newly assigned issue."""
    return NewMessage(
        id=f"linear-issue-{issue.id}-{_epoch_ms(issue)}",
        chat_jid=LINEAR_CHANNEL_JID,
        sender=SYSTEM_SENDER,
        sender_name=SYSTEM_SENDER_NAME,
        content=format_issue_content(issue, assistant_name),
        timestamp=format_timestamp(issue.updated_at),
    )


def comment_message(
    issue: IssueSnapshot, comment: IssueComment, assistant_name: str
) -> NewMessage:
    """Build the message for a new comment on a tracked issue."""
    author = comment.author
    return NewMessage(
        id=f"linear-comment-{comment.id}",
        chat_jid=LINEAR_CHANNEL_JID,
        sender=author.id if author else SYSTEM_SENDER,
        sender_name=author.label if author else SYSTEM_SENDER_NAME,
        content=format_comment_content(issue, comment, assistant_name),
        timestamp=format_timestamp(comment.created_at or issue.updated_at),
    )
