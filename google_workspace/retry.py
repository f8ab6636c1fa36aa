"""
Retry wrapper for directory service calls.

Every call against the directory goes through ``with_retry``: failures are
classified once, transient ones are retried with exponential backoff, and
everything else is surfaced to the caller as a typed ``DirectoryError``.
"""

import json
import logging
import socket
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TypeVar

from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from .exceptions import (
    DirectoryError,
    FatalDirectoryError,
    PermanentDirectoryError,
    TransientDirectoryError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    FATAL = "fatal"


TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
PERMANENT_STATUSES = {400, 404, 409, 412}
FATAL_STATUSES = {401}
RATE_LIMIT_REASONS = {"ratelimitexceeded", "userratelimitexceeded", "quotaexceeded", "backenderror"}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for one class of directory calls."""

    max_attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 32.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after failed ``attempt`` (1-based): 1s, 2s, 4s..."""
        attempt = max(attempt, 1)
        return min(self.base_delay * (self.factor ** (attempt - 1)), self.max_delay)


def http_status(error: HttpError) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None and getattr(error, "resp", None) is not None:
        status = getattr(error.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def error_reasons(error: HttpError) -> List[str]:
    """Extract the machine-readable ``reason`` values from an API error body."""
    content = getattr(error, "content", b"") or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        payload = json.loads(content)
    except (TypeError, ValueError):
        return []

    errors = payload.get("error", {}).get("errors", []) if isinstance(payload, dict) else []
    return [str(e.get("reason")) for e in errors if isinstance(e, dict) and e.get("reason")]


def classify_error(error: BaseException) -> Optional[ErrorClass]:
    """
    Classify a failure from a directory call.

    Returns:
        ErrorClass for known directory/transport failures, or None when the
        exception is not a directory failure at all (a programming error that
        the caller should see unchanged).
    """
    if isinstance(error, HttpError):
        status = http_status(error)
        reasons = {r.lower() for r in error_reasons(error)}
        if status in TRANSIENT_STATUSES:
            return ErrorClass.TRANSIENT
        if status == 403:
            return ErrorClass.TRANSIENT if reasons & RATE_LIMIT_REASONS else ErrorClass.FATAL
        if status in FATAL_STATUSES:
            return ErrorClass.FATAL
        if status in PERMANENT_STATUSES:
            return ErrorClass.PERMANENT
        if status is not None and status >= 500:
            return ErrorClass.TRANSIENT
        return ErrorClass.PERMANENT

    if isinstance(error, RefreshError):
        return ErrorClass.FATAL
    if isinstance(error, (TransportError, ConnectionError, TimeoutError, socket.timeout)):
        return ErrorClass.TRANSIENT
    return None


def to_directory_error(error: BaseException, error_class: ErrorClass, description: str) -> DirectoryError:
    """Translate a raw failure into the matching ``DirectoryError`` subclass."""
    status = http_status(error) if isinstance(error, HttpError) else None
    reasons = error_reasons(error) if isinstance(error, HttpError) else []
    reason = reasons[0] if reasons else None
    message = f"{description} failed: {error}"

    if error_class == ErrorClass.FATAL:
        return FatalDirectoryError(message, status=status, reason=reason)
    if error_class == ErrorClass.TRANSIENT:
        return TransientDirectoryError(message, status=status, reason=reason)
    return PermanentDirectoryError(message, status=status, reason=reason)


def with_retry(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    description: str = "directory call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute ``operation`` with bounded retry and exponential backoff.

    Args:
        operation: Zero-argument callable performing exactly one API call.
        policy: Retry settings (default: 3 attempts, 1s base, doubling).
        description: Short label used in log messages and errors.
        sleep: Sleep function, injectable for tests.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        PermanentDirectoryError: Immediately, for non-retryable failures.
        FatalDirectoryError: Immediately, for credential/authorization failures.
        TransientDirectoryError: After the last attempt of a retryable failure.
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except DirectoryError:
            raise
        except Exception as e:
            error_class = classify_error(e)
            if error_class is None:
                raise

            if error_class != ErrorClass.TRANSIENT:
                logger.debug(f"{description}: {error_class.value} failure, not retrying: {e}")
                raise to_directory_error(e, error_class, description) from e

            if attempt >= policy.max_attempts:
                logger.error(f"{description}: transient failure persisted after {attempt} attempts: {e}")
                raise to_directory_error(e, error_class, description) from e

            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description}: transient failure on attempt {attempt}/{policy.max_attempts}. "
                f"Retrying in {delay:.1f}s... ({e})"
            )
            sleep(delay)

    # max_attempts < 1
    raise TransientDirectoryError(f"{description} was not attempted (max_attempts={policy.max_attempts})")
