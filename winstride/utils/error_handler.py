"""
Error Handler Utility
=====================

Centralized error types, logging setup and absorb-and-log helpers for the
WinStride event viewer core.

Nothing in the event pipeline is allowed to take the session down: malformed
payloads, stale filter keys and corrupt saved state are logged and turned into
an empty or default result by the helpers in this module.
"""

import logging
import sys
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

T = TypeVar('T')  # Generic type variable for return types

# Configure logger
logger = logging.getLogger(__name__)


class ErrorSeverity:
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class WinStrideError(Exception):
    """Base exception for event viewer errors."""

    def __init__(self, message: str, details: Optional[str] = None,
                 severity: str = ErrorSeverity.ERROR):
        """
        Initialize the error.

        Args:
            message: User-friendly error message
            details: Technical details for logging
            severity: Error severity level
        """
        super().__init__(message)
        self.message = message
        self.details = details or message
        self.severity = severity


class RecordFormatError(WinStrideError):
    """Raised when a raw API payload cannot be turned into an EventRecord."""

    def __init__(self, message: str, payload: Optional[dict] = None):
        details = message
        if payload is not None:
            details += f"\nKeys: {sorted(payload.keys())}"
        super().__init__(message, details, ErrorSeverity.WARNING)
        self.payload = payload


class PayloadParseError(WinStrideError):
    """Raised when a record's eventData cannot be decoded."""

    def __init__(self, message: str, record_id: Optional[int] = None):
        super().__init__(message, severity=ErrorSeverity.WARNING)
        self.record_id = record_id


class StateStoreError(WinStrideError):
    """Raised when persisted view state cannot be read or written."""
    pass


class ErrorHandler:
    """
    Centralized error handling and logging utility.
    Provides a decorator for absorb-and-log boundaries.
    """

    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

    def __init__(self, logger_name: str = 'WinStride'):
        """
        Initialize the error handler with a logger.

        Args:
            logger_name: Name to use for the logger
        """
        self.logger = logging.getLogger(logger_name)

    def setup_logging(self, log_level: int = logging.INFO, log_file: Optional[str] = None):
        """
        Configure logging settings.

        Args:
            log_level: Logging level (e.g., logging.INFO, logging.DEBUG)
            log_file: Optional file to write logs to
        """
        # Clear any existing handlers
        self.logger.handlers = []
        self.logger.setLevel(log_level)

        formatter = logging.Formatter(self.LOG_FORMAT, datefmt=self.DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            try:
                file_handler = logging.FileHandler(log_file)
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
            except OSError as e:
                self.logger.error(f"Failed to set up file logging: {e}")

    def handle_error(self,
                     exception: Optional[BaseException] = None,
                     message: str = "An error occurred",
                     log_level: int = logging.ERROR,
                     raise_exception: bool = True) -> bool:
        """
        Handle an error with consistent logging and optional re-raising.

        Args:
            exception: The exception that was caught (if any)
            message: Custom error message
            log_level: Logging level for the error
            raise_exception: Whether to re-raise the exception

        Returns:
            bool: Always returns False to allow for early returns
        """
        full_message = message
        if exception is not None:
            full_message = f"{message}: {exception}"
            if isinstance(exception, WinStrideError) and exception.details != exception.message:
                full_message += f"\n{exception.details}"

        self.logger.log(log_level, full_message, exc_info=exception is not None and log_level >= logging.ERROR)

        if raise_exception and exception is not None:
            raise exception

        return False

    def error_decorator(self,
                        exception: type = Exception,
                        message: str = "An error occurred in function {function_name}",
                        log_level: int = logging.ERROR,
                        return_value: Any = None):
        """
        Decorator for handling exceptions in functions.

        Args:
            exception: Exception type to catch
            message: Error message template (can use {function_name} placeholder)
            log_level: Logging level
            return_value: Value to return when an exception is caught.
                          Callables are invoked to build a fresh value.

        Returns:
            Decorator function
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @wraps(func)
            def wrapper(*args, **kwargs) -> T:
                try:
                    return func(*args, **kwargs)
                except exception as e:
                    formatted_message = message.format(
                        function_name=func.__name__,
                        exception=str(e)
                    )
                    self.handle_error(e, formatted_message, log_level, False)
                    return return_value() if callable(return_value) else return_value
            return wrapper
        return decorator


# Create a default instance for easy importing
default_handler = ErrorHandler()
setup_logging = default_handler.setup_logging
handle_error = default_handler.handle_error
error_decorator = default_handler.error_decorator
