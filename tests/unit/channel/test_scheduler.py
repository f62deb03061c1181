"""Tests for the recurring poll scheduler."""

import threading
import time

import pytest

from linear_bridge.channel.scheduler import PollScheduler


class TestPollScheduler:
    """Test scheduling and cancellation."""

    def test_runs_callback_repeatedly(self):
        """Test the callback fires on each interval."""
        calls = []
        done = threading.Event()

        def callback():
            calls.append(time.monotonic())
            if len(calls) >= 3:
                done.set()

        task = PollScheduler().start(0.01, callback)
        try:
            assert done.wait(2.0)
        finally:
            task.cancel()
        assert len(calls) >= 3

    def test_cancel_stops_further_runs(self):
        """Test no runs happen after cancel()."""
        calls = []
        task = PollScheduler().start(0.01, lambda: calls.append(1))
        time.sleep(0.05)
        task.cancel()
        count = len(calls)
        time.sleep(0.05)

        assert task.cancelled is True
        assert task.is_alive() is False
        assert len(calls) == count

    def test_does_not_run_immediately(self):
        """Test the first run waits a full interval."""
        calls = []
        task = PollScheduler().start(10.0, lambda: calls.append(1))
        task.cancel()
        assert calls == []

    def test_callback_errors_do_not_stop_task(self):
        """Test an exception in one run does not end the schedule."""
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()

        task = PollScheduler().start(0.01, callback)
        try:
            assert done.wait(2.0)
        finally:
            task.cancel()

    def test_rejects_non_positive_interval(self):
        """Test a zero interval is rejected."""
        with pytest.raises(ValueError):
            PollScheduler().start(0, lambda: None)
