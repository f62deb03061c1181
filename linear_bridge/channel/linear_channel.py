"""Linear polling channel.

Watches one Linear account for newly assigned issues and new comments
and hands each change to the router as a normalized inbound message.

Each reconciliation pass:

1. fetches the issues currently assigned to the watched account,
2. diffs them against the processed-issue record,
3. delivers new issues (after baselining their existing comments),
4. checks updated issues for unseen comments,
5. persists the processed-issue record.

Issues are handled independently. When one fails (comment fetch,
baseline or delivery), its record entry is rolled back so the next pass
retries it, and the remaining issues are still processed.

Outbound traffic does not go through ``send_message``: the agent acts on
Linear through the tool surface, so raw agent output is never posted.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from threading import Lock

from ..bridge_logging import get_logger
from ..integrations.base import TrackerFacade
from ..integrations.models import IssueSnapshot, TrackerUser
from .dedup import CommentDeduplicator
from .detector import ChangeDetector, ChangeKind
from .filters import AllowListFilter
from .messages import (
    CHANNEL_DISPLAY_NAME,
    CHANNEL_JID_PREFIX,
    CHANNEL_NAME,
    LINEAR_CHANNEL_JID,
    NewMessage,
    comment_message,
    issue_message,
)
from .scheduler import PollScheduler, ScheduledTask
from .state import ProcessedIssueStore, StateStore

logger = get_logger()

OnMessage = Callable[[str, NewMessage], None]
OnChatMetadata = Callable[[str, str, str, str, bool], None]


class ConnectionState(Enum):
    """Channel connection state."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class LinearChannel:
    """Reconciliation loop for one watched Linear account."""

    def __init__(
        self,
        client: TrackerFacade,
        user_id: str,
        poll_interval_ms: int,
        on_message: OnMessage,
        on_chat_metadata: OnChatMetadata,
        state_store: StateStore,
        allowed_users: Iterable[str] = (),
        assistant_name: str = "Andy",
        registered_groups: Callable[[], dict] | None = None,
        scheduler: PollScheduler | None = None,
        comment_page_size: int = 20,
    ):
        """Initialize the channel.

        Args:
            client: Tracker facade used for all reads
            user_id: Id of the watched Linear account
            poll_interval_ms: Milliseconds between reconciliation passes
            on_message: Receives (chat_jid, NewMessage) for each delivery
            on_chat_metadata: Receives (jid, timestamp, name, channel, is_group)
            state_store: Durable key/value store for the processed-issue record
            allowed_users: Author ids allowed to trigger delivery (empty = all)
            assistant_name: Name mentioned at the start of each message
            registered_groups: Returns the router's registered chats; when
                given, messages are only delivered if this channel is registered
            scheduler: Starts the recurring poll task
            comment_page_size: Comments fetched per issue per check
        """
        self.client = client
        self.user_id = user_id
        self.poll_interval_ms = poll_interval_ms
        self.on_message = on_message
        self.on_chat_metadata = on_chat_metadata
        self.assistant_name = assistant_name
        self.registered_groups = registered_groups
        self.scheduler = scheduler or PollScheduler()
        self.comment_page_size = comment_page_size

        self.allow_list = AllowListFilter(allowed_users)
        self.detector = ChangeDetector()
        self.comments = CommentDeduplicator(user_id, self.allow_list)
        self.processed_store = ProcessedIssueStore(state_store)

        self.state = ConnectionState.DISCONNECTED
        self.viewer: TrackerUser | None = None
        self.last_delivered_issue_id: str | None = None

        self._task: ScheduledTask | None = None
        self._poll_lock = Lock()

    @property
    def name(self) -> str:
        return CHANNEL_NAME

    @property
    def allowed_users(self) -> frozenset[str]:
        return self.allow_list.allowed_ids

    @allowed_users.setter
    def allowed_users(self, user_ids: Iterable[str]) -> None:
        self.allow_list.allowed_ids = frozenset(user_ids)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Verify the credential, restore state, poll once and start polling.

        Raises:
            Exception: If the identity check against Linear fails
        """
        if self.state is ConnectionState.CONNECTED:
            logger.debug("Linear channel already connected")
            return

        self.viewer = self.client.fetch_viewer()
        logger.info(
            f"Linear connected as {self.viewer.label} ({self.viewer.id}); "
            f"watching user {self.user_id}"
        )
        if self.allow_list.enabled:
            logger.info(f"Linear allow-list active: {len(self.allowed_users)} user(s)")

        self.detector.load(self.processed_store.load())
        self.state = ConnectionState.CONNECTED

        self.poll()
        self._task = self.scheduler.start(self.poll_interval_ms / 1000.0, self.poll)

    def disconnect(self) -> None:
        """Stop polling and release the tracker session. Safe to call twice."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

        if self.state is ConnectionState.CONNECTED:
            self.client.close()
            logger.info("Linear channel disconnected")
        self.state = ConnectionState.DISCONNECTED

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def owns_jid(self, jid: str) -> bool:
        return jid.startswith(CHANNEL_JID_PREFIX)

    def set_typing(self, jid: str, is_typing: bool) -> None:
        """Linear has no typing indicator."""
        return None

    def send_message(self, jid: str, text: str) -> None:
        """Intentionally does nothing.

        The agent comments on issues through the tool surface; posting its
        raw output here would duplicate those comments.
        """
        logger.debug(f"Ignoring outbound message for {jid} ({len(text)} chars)")

    def record_bot_comment(self, comment_id: str) -> None:
        """Register a comment posted as the bot so polling never ingests it."""
        self.comments.record_bot_comment(comment_id)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def poll(self) -> int:
        """Run one reconciliation pass.

        Never raises: failures are logged and the pass counts as a no-op.
        Passes are serialized; a call made while another pass is running
        returns immediately.

        Returns:
            Number of messages delivered
        """
        if not self._poll_lock.acquire(blocking=False):
            logger.debug("Previous Linear poll still running; skipping")
            return 0
        try:
            return self._reconcile()
        except Exception as e:
            logger.error(f"Linear poll failed: {e}")
            return 0
        finally:
            self._poll_lock.release()

    def _reconcile(self) -> int:
        issues = self.client.fetch_assigned_issues(self.user_id)
        delivered = 0

        for change in self.detector.diff(issues):
            if change.kind is ChangeKind.VANISHED:
                logger.info(f"Stopped tracking issue {change.issue_id}")
                continue
            if change.kind is ChangeKind.UNCHANGED:
                continue

            try:
                if change.kind is ChangeKind.NEW:
                    delivered += self._handle_new_issue(change.issue)
                else:
                    delivered += self._handle_updated_issue(change.issue)
            except Exception as e:
                # Restore the record so the next poll retries this issue
                self.detector.rollback(change)
                logger.warning(
                    f"Handling {change.kind.value} issue {change.issue.identifier} "
                    f"failed, retrying next poll: {e}"
                )

        self.processed_store.save(self.detector.snapshot())

        if delivered:
            logger.info(f"Linear poll delivered {delivered} message(s)")
        return delivered

    def _handle_new_issue(self, issue: IssueSnapshot) -> int:
        # Existing discussion is history, not new messages. A failed fetch
        # propagates so the issue stays unrecorded and is not delivered yet.
        self.comments.baseline(
            self.client.fetch_comments(issue.id, self.comment_page_size)
        )

        if not self.allow_list.allows(issue.creator_id):
            logger.info(
                f"Skipping {issue.identifier}: creator {issue.creator_id} "
                f"not in allow-list"
            )
            return 0

        if not self._emit(issue_message(issue, self.assistant_name)):
            return 0
        self.last_delivered_issue_id = issue.id
        logger.info(f"Delivered new assignment {issue.identifier}")
        return 1

    def _handle_updated_issue(self, issue: IssueSnapshot) -> int:
        comments = self.client.fetch_comments(issue.id, self.comment_page_size)
        new_comments = self.comments.select_new(comments)

        delivered = 0
        for index, comment in enumerate(new_comments):
            try:
                emitted = self._emit(comment_message(issue, comment, self.assistant_name))
            except Exception:
                self.comments.forget(c.id for c in new_comments[index:])
                raise
            if emitted:
                delivered += 1
                logger.info(f"Delivered comment {comment.id} on {issue.identifier}")
        return delivered

    def _emit(self, message: NewMessage) -> bool:
        self.on_chat_metadata(
            LINEAR_CHANNEL_JID, message.timestamp, CHANNEL_DISPLAY_NAME, CHANNEL_NAME, False
        )

        if self.registered_groups is not None:
            if LINEAR_CHANNEL_JID not in self.registered_groups():
                logger.debug(f"{LINEAR_CHANNEL_JID} is not registered; dropping message")
                return False

        self.on_message(LINEAR_CHANNEL_JID, message)
        return True
