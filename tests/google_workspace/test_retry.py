"""
Unit tests for directory error classification and the retry wrapper.
"""

import json
from unittest.mock import MagicMock

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from google_workspace.exceptions import (
    FatalDirectoryError,
    PermanentDirectoryError,
    TransientDirectoryError,
)
from google_workspace.retry import ErrorClass, RetryPolicy, classify_error, error_reasons, with_retry


def http_error(status, reason=None):
    errors = [{"reason": reason, "message": reason}] if reason else []
    content = json.dumps({"error": {"code": status, "message": "boom", "errors": errors}}).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), content)


class TestClassifyError:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_server_and_rate_limit_statuses_are_transient(self, status):
        assert classify_error(http_error(status)) == ErrorClass.TRANSIENT

    @pytest.mark.parametrize("status", [400, 404, 409, 412])
    def test_client_statuses_are_permanent(self, status):
        assert classify_error(http_error(status)) == ErrorClass.PERMANENT

    def test_unauthorized_is_fatal(self):
        assert classify_error(http_error(401)) == ErrorClass.FATAL

    def test_forbidden_rate_limit_is_transient(self):
        assert classify_error(http_error(403, "userRateLimitExceeded")) == ErrorClass.TRANSIENT

    def test_forbidden_without_rate_limit_is_fatal(self):
        assert classify_error(http_error(403, "forbidden")) == ErrorClass.FATAL

    def test_credential_refresh_failure_is_fatal(self):
        assert classify_error(RefreshError("invalid_grant")) == ErrorClass.FATAL

    def test_connection_failure_is_transient(self):
        assert classify_error(ConnectionError("reset")) == ErrorClass.TRANSIENT

    def test_programming_errors_are_not_classified(self):
        assert classify_error(KeyError("primaryEmail")) is None

    def test_error_reasons_parsed_from_body(self):
        assert error_reasons(http_error(409, "duplicate")) == ["duplicate"]


class TestRetryPolicy:
    def test_delays_double_and_cap(self):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, factor=2.0, max_delay=5.0)

        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]


class TestWithRetry:
    def setup_method(self):
        self.sleeps = []
        self.sleep = self.sleeps.append

    def test_transient_failure_then_success(self):
        operation = MagicMock(side_effect=[http_error(503), http_error(429), {"ok": True}])

        result = with_retry(operation, RetryPolicy(max_attempts=3), sleep=self.sleep)

        assert result == {"ok": True}
        assert operation.call_count == 3
        assert self.sleeps == [1.0, 2.0]

    def test_transient_failure_exhausts_attempts(self):
        operation = MagicMock(side_effect=http_error(503))

        with pytest.raises(TransientDirectoryError) as excinfo:
            with_retry(operation, RetryPolicy(max_attempts=3), sleep=self.sleep)

        assert operation.call_count == 3
        assert len(self.sleeps) == 2
        assert excinfo.value.status == 503

    def test_permanent_failure_is_not_retried(self):
        operation = MagicMock(side_effect=http_error(404, "notFound"))

        with pytest.raises(PermanentDirectoryError) as excinfo:
            with_retry(operation, sleep=self.sleep)

        assert operation.call_count == 1
        assert self.sleeps == []
        assert excinfo.value.is_not_found
        assert excinfo.value.code == "404:notFound"

    def test_duplicate_is_permanent(self):
        operation = MagicMock(side_effect=http_error(409, "duplicate"))

        with pytest.raises(PermanentDirectoryError) as excinfo:
            with_retry(operation, sleep=self.sleep)

        assert excinfo.value.is_duplicate

    def test_fatal_failure_is_not_retried(self):
        operation = MagicMock(side_effect=http_error(401))

        with pytest.raises(FatalDirectoryError):
            with_retry(operation, sleep=self.sleep)

        assert operation.call_count == 1

    def test_unclassified_exception_propagates_unchanged(self):
        operation = MagicMock(side_effect=ValueError("bad body"))

        with pytest.raises(ValueError):
            with_retry(operation, sleep=self.sleep)

        assert operation.call_count == 1
