"""
Infrastructure exceptions for the promotions engine.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
storage backend failures, configuration errors and lock contention. These are
engineering-level issues, never promotion decisions (decisions are carried in
evaluation reason trails, not exceptions).

Design Notes
------------
- All infrastructure exceptions inherit from `PromoInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from promo_engine.domain.exceptions import ErrorSeverity


class PromoInfrastructureException(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise PromoInfrastructureException(
        ...     "Redis connection failed",
        ...     {"host": "localhost", "port": 6379}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(PromoInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class StorageError(PromoInfrastructureException):
    """
    Raised when a storage backend operation fails.

    Wraps driver-level failures (Redis, SQLAlchemy) so that services only
    ever see one infrastructure error type per concern.

    Args:
        operation: Description of the storage operation that failed
        original_error: The underlying driver exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        message = f"Storage error during {operation}: {original_error}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="STORAGE_ERROR",
        )


class LockAcquisitionError(PromoInfrastructureException):
    """
    Raised when a per-player lock cannot be acquired in time.

    Args:
        lock_key: Identifier of the contended lock
        wait_timeout: Seconds spent waiting before giving up
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, lock_key: str, wait_timeout: float) -> None:
        self.lock_key = lock_key
        self.wait_timeout = wait_timeout
        super().__init__(
            f"Failed to acquire lock '{lock_key}' within {wait_timeout}s",
            details={"lock_key": lock_key, "wait_timeout": wait_timeout},
            error_code="LOCK_TIMEOUT",
        )
