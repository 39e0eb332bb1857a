"""
Utility functions and helpers for the WinStride event viewer.
Includes error handling, logging setup and timestamp parsing.
"""

from .error_handler import (
    ErrorHandler,
    ErrorSeverity,
    WinStrideError,
    RecordFormatError,
    PayloadParseError,
    StateStoreError,
    setup_logging,
    handle_error,
    error_decorator,
)
from .timestamp_parser import TimestampParser

__all__ = [
    'ErrorHandler',
    'ErrorSeverity',
    'WinStrideError',
    'RecordFormatError',
    'PayloadParseError',
    'StateStoreError',
    'setup_logging',
    'handle_error',
    'error_decorator',
    'TimestampParser',
]
