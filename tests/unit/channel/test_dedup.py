"""Tests for bounded id sets and comment deduplication."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from linear_bridge.channel.dedup import BoundedIdSet, CommentDeduplicator
from linear_bridge.channel.filters import AllowListFilter

BOT = "user-bot-123"


class TestBoundedIdSet:
    """Test high-water-mark eviction."""

    def test_membership(self):
        """Test added ids are members."""
        ids = BoundedIdSet(10)
        ids.add("a")
        assert "a" in ids
        assert "b" not in ids

    def test_trims_to_half_when_exceeded(self):
        """Test exceeding the mark keeps only the newest half."""
        ids = BoundedIdSet(10)
        ids.update(f"c-{i}" for i in range(11))

        assert len(ids) == 5
        assert list(ids) == [f"c-{i}" for i in range(6, 11)]
        assert "c-0" not in ids

    def test_never_exceeds_high_water_mark(self):
        """Test repeated inserts stay bounded."""
        ids = BoundedIdSet(100)
        for i in range(1000):
            ids.add(f"id-{i}")
            assert len(ids) <= 100
        assert "id-999" in ids

    def test_duplicate_add_keeps_position(self):
        """Test re-adding an id does not count as a new insertion."""
        ids = BoundedIdSet(4)
        ids.update(["a", "b", "c", "d"])
        ids.add("a")
        assert len(ids) == 4
        ids.add("e")
        assert list(ids) == ["d", "e"]

    def test_rejects_tiny_capacity(self):
        """Test a high-water mark below 2 is rejected."""
        with pytest.raises(ValueError):
            BoundedIdSet(1)


class TestCommentDeduplicator:
    """Test comment selection rules."""

    @pytest.fixture
    def dedup(self) -> CommentDeduplicator:
        return CommentDeduplicator(BOT, AllowListFilter())

    def test_new_comment_selected_once(self, dedup, comment_factory):
        """Test a comment is returned the first time only."""
        comment = comment_factory("c-1")
        assert dedup.select_new([comment]) == [comment]
        assert dedup.select_new([comment]) == []

    def test_baseline_suppresses_history(self, dedup, comment_factory):
        """Test baselined comments are never selected."""
        comments = [comment_factory("c-1"), comment_factory("c-2")]
        assert dedup.baseline(comments) == 2
        assert dedup.baseline(comments) == 0
        assert dedup.select_new(comments) == []

    def test_own_comment_skipped_and_marked_seen(self, dedup, comment_factory):
        """Test the watched account's comments are dropped but still marked seen."""
        comment = comment_factory("c-bot", author_id=BOT)
        assert dedup.select_new([comment]) == []
        assert "c-bot" in dedup.seen

    def test_bot_comment_ids_skipped(self, dedup, comment_factory):
        """Test ids recorded as bot replies are skipped regardless of author."""
        dedup.record_bot_comment("c-reply")
        assert dedup.select_new([comment_factory("c-reply", author_id="someone")]) == []

    def test_unresolvable_author_skipped(self, dedup, comment_factory):
        """Test comments without an author are skipped and marked seen."""
        assert dedup.select_new([comment_factory("c-x", author_id=None)]) == []
        assert "c-x" in dedup.seen

    def test_allow_list_applies_to_authors(self, comment_factory):
        """Test authors outside the allow-list are filtered."""
        dedup = CommentDeduplicator(BOT, AllowListFilter(["ok-user"]))
        allowed = comment_factory("c-1", author_id="ok-user")
        blocked = comment_factory("c-2", author_id="other-user")

        assert dedup.select_new([allowed, blocked]) == [allowed]
        assert "c-2" in dedup.seen

    def test_seen_set_is_bounded(self, comment_factory):
        """Test the seen set honours its high-water mark."""
        dedup = CommentDeduplicator(BOT, AllowListFilter(), seen_high_water=20)
        dedup.baseline(comment_factory(f"c-{i}") for i in range(100))
        assert len(dedup.seen) <= 20

    def test_bot_set_is_bounded(self):
        """Test the bot comment set honours its own high-water mark."""
        dedup = CommentDeduplicator(BOT, AllowListFilter(), bot_high_water=10)
        for i in range(11):
            dedup.record_bot_comment(f"reply-{i}")

        assert len(dedup.bot_comments) == 5
        assert "reply-10" in dedup.bot_comments
        assert "reply-0" not in dedup.bot_comments

    def test_forget_allows_reselection(self, dedup, comment_factory):
        """Test forgotten comments are evaluated again on the next check."""
        comment = comment_factory("c-1")
        assert dedup.select_new([comment]) == [comment]

        dedup.forget(["c-1"])
        assert "c-1" not in dedup.seen
        assert dedup.select_new([comment]) == [comment]

    def test_concurrent_bot_records_and_selection(self, comment_factory):
        """Test bot replies recorded from other threads never corrupt the sets."""
        dedup = CommentDeduplicator(BOT, AllowListFilter(), bot_high_water=50)
        comments = [comment_factory(f"c-{i}") for i in range(200)]

        def record(i: int):
            dedup.record_bot_comment(f"reply-{i}")

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(record, i) for i in range(500)]
            selected = dedup.select_new(comments)
            for future in futures:
                future.result()

        assert selected == comments
        assert len(dedup.bot_comments) <= 50
