"""
Base service class and utilities for all services.
Provides common functionality like logging and result wrapping.
"""
import logging
from typing import Any, Dict, Optional


class BaseService:
    """
    Base service class that all other services should inherit from.
    Provides common functionality for structured logging.
    """

    def __init__(self):
        """Initialize the service with a logger."""
        self.logger = logging.getLogger(self.__class__.__name__)

    def log_info(self, message: str, **kwargs) -> None:
        """
        Log an info message with optional context.

        Args:
            message: The message to log
            **kwargs: Additional context to include in the log
        """
        self.logger.info(message, extra={'context': kwargs})

    def log_error(self, message: str, exception: Optional[Exception] = None, **kwargs) -> None:
        """
        Log an error message with optional exception and context.

        Args:
            message: The error message to log
            exception: Optional exception that caused the error
            **kwargs: Additional context to include in the log
        """
        self.logger.error(
            message,
            exc_info=exception,
            extra={'context': kwargs}
        )

    def log_warning(self, message: str, **kwargs) -> None:
        """
        Log a warning message with optional context.

        Args:
            message: The warning message to log
            **kwargs: Additional context to include in the log
        """
        self.logger.warning(message, extra={'context': kwargs})


class ServiceResult:
    """
    A wrapper for service method results that includes success/failure status.
    Useful for operations that might fail but shouldn't raise exceptions.
    """

    def __init__(self, success: bool, data: Optional[Any] = None,
                 error: Optional[str] = None, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize service result.

        Args:
            success: Whether the operation succeeded
            data: The result data if successful
            error: Error message if failed
            error_code: Optional error code for categorization
            details: Optional upstream error details (e.g. Stripe type/code)
        """
        self.success = success
        self.data = data
        self.error = error
        self.error_code = error_code
        self.details = details or {}

    @classmethod
    def ok(cls, data: Any = None) -> 'ServiceResult':
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            A successful ServiceResult instance
        """
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: Optional[str] = None,
             details: Optional[Dict[str, Any]] = None) -> 'ServiceResult':
        """
        Create a failed result.

        Args:
            error: Error message
            error_code: Optional error code
            details: Optional upstream error details

        Returns:
            A failed ServiceResult instance
        """
        return cls(success=False, error=error, error_code=error_code,
                   details=details)

    def __bool__(self) -> bool:
        """Allow ServiceResult to be used in boolean context."""
        return self.success

    def __repr__(self) -> str:
        """String representation of the result."""
        if self.success:
            return f"<ServiceResult: Success, data={self.data}>"
        return f"<ServiceResult: Failure, error={self.error}, code={self.error_code}>"
