"""Base classes for the issue tracker integration.

``TrackerFacade`` is the narrow capability interface the reconciliation
engine depends on. ``IntegrationClient`` provides the rate limiting and
retry logic shared by concrete API clients.
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import IssueComment, IssueSnapshot, TrackerUser


class TrackerError(Exception):
    """Raised when the tracker API reports an error."""


class TrackerFacade(ABC):
    """Read and reply operations the polling channel needs from a tracker."""

    @abstractmethod
    def fetch_viewer(self) -> TrackerUser:
        """Return the identity behind the API credential.

        Raises:
            Exception: If the credential is rejected or the API is unreachable
        """
        pass

    @abstractmethod
    def fetch_assigned_issues(self, user_id: str) -> list[IssueSnapshot]:
        """Return open issues currently assigned to ``user_id``.

        Completed and canceled issues are excluded by the tracker query.
        """
        pass

    @abstractmethod
    def fetch_comments(self, issue_id: str, limit: int = 20) -> list[IssueComment]:
        """Return the most recent page of comments, oldest first."""
        pass

    @abstractmethod
    def resolve_issue(self, identifier: str) -> IssueSnapshot | None:
        """Look up an issue by identifier (e.g., "ENG-123") or id."""
        pass

    @abstractmethod
    def post_comment(
        self, issue_id: str, body: str, parent_id: str | None = None
    ) -> str:
        """Post a comment and return the new comment id."""
        pass

    def close(self) -> None:
        """Release any session held by the client."""
        return None


class IntegrationClient(ABC):
    """Rate limiting and retry helpers for tracker API clients."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        requests_per_minute: int = 60,
    ):
        """Initialize the integration client.

        Args:
            api_key: API key for authentication
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff (seconds)
            max_delay: Maximum delay between retries (seconds)
            requests_per_minute: Rate limit (requests per minute)
        """
        self.api_key = api_key
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._requests_per_minute = requests_per_minute

        # Rate limiting state
        self._request_times: list[float] = []

    def _check_rate_limits(self) -> None:
        """Block until another request fits in the per-minute budget."""
        current_time = time.time()

        # Clean old entries (older than 1 minute)
        self._request_times = [t for t in self._request_times if current_time - t < 60]

        if len(self._request_times) >= self._requests_per_minute:
            sleep_time = 60 - (current_time - self._request_times[0]) + 1
            if sleep_time > 0:
                time.sleep(sleep_time)

    def _record_request(self) -> None:
        """Record a request for rate limiting."""
        self._request_times.append(time.time())

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (2**attempt)
        delay = min(delay, self.max_delay)
        # Add jitter (10-30% of delay)
        jitter = random.uniform(0.1, 0.3) * delay
        return delay + jitter

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if error should trigger retry.

        Args:
            error: The exception that occurred
            attempt: Current attempt number (0-indexed)

        Returns:
            True if should retry, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        error_str = str(error).lower()
        transient_errors = [
            "rate limit",
            "ratelimited",
            "timeout",
            "timed out",
            "connection",
            "429",
            "503",
            "502",
            "500",
            "temporarily unavailable",
        ]
        return any(err in error_str for err in transient_errors)

    def _execute_with_retry(self, operation: Callable[..., Any], *args, **kwargs):
        """Execute an operation with retry logic.

        Args:
            operation: The function to execute
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result of the operation

        Raises:
            Exception: If all retries are exhausted
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                self._check_rate_limits()
                result = operation(*args, **kwargs)
                self._record_request()
                return result
            except Exception as e:
                last_error = e
                if self._should_retry(e, attempt):
                    time.sleep(self._calculate_delay(attempt))
                else:
                    raise

        if last_error:
            raise last_error
