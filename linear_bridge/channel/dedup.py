"""Comment deduplication for the polling channel."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable
from threading import Lock

from ..bridge_logging import get_logger
from ..integrations.models import IssueComment
from .filters import AllowListFilter

logger = get_logger()

SEEN_COMMENTS_HIGH_WATER = 5000
BOT_COMMENTS_HIGH_WATER = 500


class BoundedIdSet:
    """Insertion-ordered set of ids with a high-water mark.

    When an insert pushes the size past ``high_water_mark``, only the
    most recent ``high_water_mark // 2`` ids are kept.
    """

    def __init__(self, high_water_mark: int):
        if high_water_mark < 2:
            raise ValueError("high_water_mark must be at least 2")
        self.high_water_mark = high_water_mark
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, item: object) -> bool:
        return item in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(self._ids)

    def add(self, item: str) -> None:
        """Add an id; re-adding an existing id does not refresh its position."""
        if item in self._ids:
            return
        self._ids[item] = None
        if len(self._ids) > self.high_water_mark:
            self._trim()

    def update(self, items: Iterable[str]) -> None:
        for item in items:
            self.add(item)

    def _trim(self) -> None:
        keep = self.high_water_mark // 2
        evicted = len(self._ids) - keep
        while len(self._ids) > keep:
            self._ids.popitem(last=False)
        logger.debug(f"Evicted {evicted} oldest ids (kept {keep})")

    def discard(self, item: str) -> None:
        self._ids.pop(item, None)


class CommentDeduplicator:
    """Decides which comments on an updated issue are new and deliverable.

    Every comment id is evaluated at most once: it is marked seen before
    the author checks run, so a filtered comment is never evaluated again
    while its id remains in the seen set.

    Bot comment ids arrive from the tool surface on other threads, so all
    access to both sets goes through one lock.
    """

    def __init__(
        self,
        watched_user_id: str,
        allow_list: AllowListFilter,
        seen_high_water: int = SEEN_COMMENTS_HIGH_WATER,
        bot_high_water: int = BOT_COMMENTS_HIGH_WATER,
    ):
        """Initialize the deduplicator.

        Args:
            watched_user_id: Id of the account the channel acts as
            allow_list: Author filter applied to comments
            seen_high_water: Capacity of the seen-comment set
            bot_high_water: Capacity of the bot-comment set
        """
        self.watched_user_id = watched_user_id
        self.allow_list = allow_list
        self.seen = BoundedIdSet(seen_high_water)
        self.bot_comments = BoundedIdSet(bot_high_water)
        self._lock = Lock()

    def baseline(self, comments: Iterable[IssueComment]) -> int:
        """Mark existing comments as seen without delivering them.

        Returns:
            Number of ids newly marked
        """
        count = 0
        with self._lock:
            for comment in comments:
                if comment.id not in self.seen:
                    self.seen.add(comment.id)
                    count += 1
        return count

    def record_bot_comment(self, comment_id: str) -> None:
        """Remember a comment the bot posted so it is never ingested."""
        with self._lock:
            self.bot_comments.add(comment_id)

    def forget(self, comment_ids: Iterable[str]) -> None:
        """Unmark comments so the next check evaluates them again."""
        with self._lock:
            for comment_id in comment_ids:
                self.seen.discard(comment_id)

    def select_new(self, comments: Iterable[IssueComment]) -> list[IssueComment]:
        """Return the comments that should be delivered, in arrival order."""
        deliverable: list[IssueComment] = []

        with self._lock:
            for comment in comments:
                if self._is_deliverable(comment):
                    deliverable.append(comment)
        return deliverable

    def _is_deliverable(self, comment: IssueComment) -> bool:
        # Caller holds the lock
        if comment.id in self.seen or comment.id in self.bot_comments:
            return False
        self.seen.add(comment.id)

        author = comment.author
        if author is None:
            logger.debug(f"Skipping comment {comment.id}: author unresolvable")
            return False

        # Loop prevention: never ingest our own comments
        if author.id == self.watched_user_id:
            return False

        if not self.allow_list.allows(author.id):
            logger.info(
                f"Skipping comment {comment.id} from {author.id}: not in allow-list"
            )
            return False

        return True
