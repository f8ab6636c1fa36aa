from typing import Any, Dict, Optional


class RosterError(Exception):
    """Base exception for roster loading errors."""
    pass


class SourceUnavailable(RosterError):
    """Raised when the backing roster source cannot be read at all."""
    pass


class MalformedRecord(RosterError):
    """
    Raised for a single roster row that fails validation.

    The snapshot loader catches this, logs it and skips the row; it never
    aborts a run on its own.
    """

    def __init__(self, reason: str, row: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        self.row = row or {}
