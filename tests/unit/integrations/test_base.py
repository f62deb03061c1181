"""Tests for the integration base classes."""

import time
from unittest.mock import MagicMock, patch

import pytest

from linear_bridge.integrations.base import IntegrationClient, TrackerFacade


class ConcreteClient(IntegrationClient):
    """Concrete implementation for testing the retry helpers."""

    def __init__(self, api_key: str = "test-key", requests_per_minute: int = 60):
        super().__init__(api_key, requests_per_minute=requests_per_minute)


class TestIntegrationClientInit:
    """Test IntegrationClient initialization."""

    def test_init_with_api_key(self):
        """Test initialization with API key."""
        client = ConcreteClient(api_key="my-api-key")
        assert client.api_key == "my-api-key"

    def test_init_with_rate_limit(self):
        """Test initialization with custom rate limit."""
        client = ConcreteClient(requests_per_minute=30)
        assert client._requests_per_minute == 30

    def test_init_default_rate_limit(self):
        """Test default rate limit is 60."""
        client = ConcreteClient()
        assert client._requests_per_minute == 60


class TestRateLimiting:
    """Test rate limiting functionality."""

    def test_record_request(self):
        """Test recording a request updates timestamp list."""
        client = ConcreteClient(requests_per_minute=60)
        client._record_request()
        assert len(client._request_times) == 1

    def test_rate_limit_cleanup_old_timestamps(self):
        """Test that old timestamps are cleaned up."""
        client = ConcreteClient(requests_per_minute=60)
        client._request_times = [time.time() - 120] * 10
        client._check_rate_limits()
        assert len(client._request_times) == 0

    def test_rate_limit_blocks_when_exceeded(self):
        """Test that rate limit causes blocking when exceeded."""
        client = ConcreteClient(requests_per_minute=5)
        client._request_times = [time.time()] * 5
        with patch("time.sleep") as mock_sleep:
            client._check_rate_limits()
            mock_sleep.assert_called()


class TestRetryLogic:
    """Test retry and backoff logic."""

    def test_calculate_delay_base(self):
        """Test base delay calculation."""
        client = ConcreteClient()
        delay = client._calculate_delay(attempt=0)
        assert 1.0 <= delay <= 1.5

    def test_calculate_delay_max_cap(self):
        """Test delay is capped at maximum."""
        client = ConcreteClient()
        assert client._calculate_delay(attempt=10) <= 40

    @pytest.mark.parametrize(
        "message",
        [
            "rate limit exceeded",
            "GraphQL error: Ratelimited",
            "connection timeout",
            "Read timed out",
            "500 Internal Server Error",
        ],
    )
    def test_should_retry_transient_errors(self, message):
        """Test that transient errors trigger retry."""
        assert ConcreteClient()._should_retry(Exception(message), attempt=0)

    @pytest.mark.parametrize("message", ["401 Unauthorized", "Entity not found: Issue"])
    def test_should_not_retry_permanent_errors(self, message):
        """Test that permanent errors do not trigger retry."""
        assert not ConcreteClient()._should_retry(Exception(message), attempt=0)

    def test_should_not_retry_max_attempts(self):
        """Test that max attempts stops retry."""
        client = ConcreteClient()
        assert not client._should_retry(Exception("rate limit exceeded"), attempt=3)


class TestExecuteWithRetry:
    """Test execute_with_retry wrapper."""

    def test_successful_execution(self):
        """Test successful execution without retry."""
        client = ConcreteClient()
        mock_func = MagicMock(return_value="success")
        assert client._execute_with_retry(mock_func) == "success"
        assert mock_func.call_count == 1

    def test_retry_on_transient_error(self):
        """Test retry on transient error."""
        client = ConcreteClient()
        mock_func = MagicMock(side_effect=[Exception("timeout"), "success"])
        with patch.object(client, "_calculate_delay", return_value=0.01):
            with patch("time.sleep"):
                result = client._execute_with_retry(mock_func)
        assert result == "success"
        assert mock_func.call_count == 2

    def test_no_retry_on_permanent_error(self):
        """Test no retry on permanent error."""
        client = ConcreteClient()
        mock_func = MagicMock(side_effect=Exception("401 Unauthorized"))
        with pytest.raises(Exception, match="401 Unauthorized"):
            client._execute_with_retry(mock_func)
        assert mock_func.call_count == 1

    def test_max_retries_exceeded(self):
        """Test that max retries are respected."""
        client = ConcreteClient()
        mock_func = MagicMock(side_effect=Exception("timeout"))
        with patch("time.sleep"):
            with pytest.raises(Exception, match="timeout"):
                client._execute_with_retry(mock_func)
        # max_retries is 3, so it tries 4 times total
        assert mock_func.call_count == 4


class TestTrackerFacade:
    """Test the tracker facade contract."""

    def test_cannot_instantiate_facade(self):
        """Test that the abstract facade cannot be instantiated."""
        with pytest.raises(TypeError):
            TrackerFacade()  # type: ignore

    def test_close_defaults_to_noop(self, tracker_stub):
        """Test close() is optional for implementations."""
        assert tracker_stub.close() is None


@pytest.fixture
def tracker_stub() -> TrackerFacade:
    class Stub(TrackerFacade):
        def fetch_viewer(self):
            return None

        def fetch_assigned_issues(self, user_id):
            return []

        def fetch_comments(self, issue_id, limit=20):
            return []

        def resolve_issue(self, identifier):
            return None

        def post_comment(self, issue_id, body, parent_id=None):
            return ""

    return Stub()
