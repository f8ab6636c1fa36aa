from .exceptions import (
    DirectoryError,
    FatalDirectoryError,
    PermanentDirectoryError,
    TransientDirectoryError,
)
from .facade.workspace_facade import GoogleWorkspaceFacade
from .retry import ErrorClass, RetryPolicy, classify_error, with_retry

__all__ = [
    'DirectoryError',
    'ErrorClass',
    'FatalDirectoryError',
    'GoogleWorkspaceFacade',
    'PermanentDirectoryError',
    'RetryPolicy',
    'TransientDirectoryError',
    'classify_error',
    'with_retry',
]
