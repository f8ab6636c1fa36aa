class SyncError(Exception):
    """Base exception for synchronization errors."""
    pass


class ConfigurationError(SyncError):
    """Raised when sync settings are missing or invalid."""
    pass


class SyncItemError(SyncError):
    """
    Raised by a job for a single work item that cannot be processed.

    The batch executor logs it, records it in the run report and moves on to
    the next item.
    """

    def __init__(self, message: str, address: str = "", code: str = "item_error"):
        super().__init__(message)
        self.address = address
        self.code = code
