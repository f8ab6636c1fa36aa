from typing import Optional


class DirectoryError(Exception):
    """Base exception for directory service errors."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason

    @property
    def code(self) -> str:
        """Short code used when aggregating failures in run reports."""
        if self.status and self.reason:
            return f"{self.status}:{self.reason}"
        if self.status:
            return str(self.status)
        return self.reason or type(self).__name__


class TransientDirectoryError(DirectoryError):
    """Raised when a retryable failure persisted through every attempt."""
    pass


class PermanentDirectoryError(DirectoryError):
    """Raised for failures that retrying cannot fix (bad input, missing, duplicate)."""

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_duplicate(self) -> bool:
        return self.status == 409 or (self.reason or "").lower() == "duplicate"


class FatalDirectoryError(DirectoryError):
    """Raised for credential or authorization failures; the run must stop."""
    pass
