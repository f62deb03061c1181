"""Recurring task scheduling for the polling channel.

``PollScheduler.start`` runs a callback every ``interval`` seconds on a
background thread and returns a ``ScheduledTask`` handle whose
``cancel()`` stops further runs. The next wait only starts after the
previous run has returned, so runs of one task never overlap.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from ..bridge_logging import get_logger

logger = get_logger()


class ScheduledTask:
    """Handle for a running recurring task."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], object],
        name: str = "poll-scheduler",
    ):
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.callback()
            except Exception as e:
                # Callbacks handle their own errors; this keeps the thread alive
                logger.error(f"Scheduled task {self._thread.name} failed: {e}")

    def start(self) -> ScheduledTask:
        self._thread.start()
        return self

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def cancel(self, timeout: float | None = 5.0) -> None:
        """Stop scheduling further runs.

        A run already in progress is not interrupted; this waits up to
        ``timeout`` seconds for it to finish.
        """
        self._stopped.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)


class PollScheduler:
    """Starts recurring tasks on daemon threads."""

    def __init__(self, name: str = "linear-poll"):
        self.name = name

    def start(self, interval: float, callback: Callable[[], object]) -> ScheduledTask:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        logger.debug(f"Scheduling {self.name} every {interval:.1f}s")
        return ScheduledTask(interval, callback, name=self.name).start()
