"""Unit tests for typed provider results and the retry loop."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from unittest.mock import Mock, patch
from services.provider_result import (
    Ok,
    RetryableError,
    FatalError,
    call_with_retry,
    is_transient_status,
)


class TestTransientStatus:

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient(self, status):
        assert is_transient_status(status)

    @pytest.mark.parametrize("status", [None, 200, 400, 401, 403, 404, 422])
    def test_not_transient(self, status):
        assert not is_transient_status(status)


class TestCallWithRetry:
    """Test suite for call_with_retry."""

    def test_ok_returns_immediately(self):
        """Test a successful first attempt makes no further calls."""
        call = Mock(return_value=Ok([0.1, 0.2]))
        sleep = Mock()

        result = call_with_retry(call, max_attempts=3, base_delay=1.0, sleep=sleep)

        assert result == Ok([0.1, 0.2])
        assert call.call_count == 1
        sleep.assert_not_called()

    def test_retryable_twice_then_ok(self):
        """Test two transient failures incur exactly two linear backoff delays."""
        call = Mock(side_effect=[
            RetryableError("429", code="RATE_LIMIT_ERROR", status_code=429),
            RetryableError("429", code="RATE_LIMIT_ERROR", status_code=429),
            Ok("vector"),
        ])
        sleep = Mock()

        result = call_with_retry(call, max_attempts=3, base_delay=1.0, sleep=sleep)

        assert result == Ok("vector")
        assert call.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_fatal_is_not_retried(self):
        """Test a fatal result stops the loop on the first attempt."""
        call = Mock(return_value=FatalError("unauthorized", code="AUTHENTICATION_ERROR", status_code=401))
        sleep = Mock()

        result = call_with_retry(call, max_attempts=3, base_delay=1.0, sleep=sleep)

        assert isinstance(result, FatalError)
        assert result.status_code == 401
        assert call.call_count == 1
        sleep.assert_not_called()

    def test_exhausted_returns_last_retryable(self):
        """Test exhaustion returns the final transient result with no trailing delay."""
        call = Mock(side_effect=[
            RetryableError("first"),
            RetryableError("second"),
            RetryableError("third"),
        ])
        sleep = Mock()

        result = call_with_retry(call, max_attempts=3, base_delay=0.5, sleep=sleep)

        assert result == RetryableError("third")
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_default_sleep_is_time_sleep(self):
        """Test time.sleep is used when no sleep function is supplied."""
        call = Mock(side_effect=[RetryableError("busy"), Ok(1)])

        with patch('time.sleep') as mock_sleep:
            result = call_with_retry(call, max_attempts=3, base_delay=1.0)

        assert result == Ok(1)
        mock_sleep.assert_called_once_with(1.0)

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            call_with_retry(Mock(), max_attempts=0)
