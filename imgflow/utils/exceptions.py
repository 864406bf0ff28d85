"""
Base exception classes and upload error kinds for the imgflow upload layer.

This module implements the exception hierarchy shared by every imgflow component.
Each error carries a machine-readable kind, a category and severity for
classification, a correlation ID for log correlation, and a default HTTP status
that the error mapper can use when translating failures into responses.

Key Features:
- Hierarchical exception classes for consistent error categorization
- Upload-specific error kinds (invalid subfolder, limit exceeded, invalid type,
  invalid image, codec failure, storage failure)
- Structured logging of every raised error through structlog
- Prometheus error counter keyed by error type and category
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from flask import has_request_context, request

from imgflow.monitoring.metrics import error_counter

# Get structured logger
logger = structlog.get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for hierarchical classification."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    PROCESSING = "processing"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and alerting."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorKind(Enum):
    """Caller-visible failure kinds produced by the upload pipeline."""

    INVALID_SUBFOLDER = "INVALID_SUBFOLDER"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_IMAGE = "INVALID_IMAGE"
    CODEC_FAILURE = "CODEC_FAILURE"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class BaseApplicationError(Exception):
    """
    Base exception class for all imgflow errors.

    Provides consistent error handling infrastructure with structured error
    reporting, logging integration, and metrics collection.

    Attributes:
        message: Human-readable error message
        code: Application-specific error code
        category: Error category for classification
        severity: Error severity level
        details: Additional error context
        correlation_id: Unique identifier for error tracking
        http_status: Default HTTP status for responses built from this error
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        http_status: int = 400
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid4())
        self.http_status = http_status
        self.timestamp = datetime.now(timezone.utc).isoformat()

        # Extract request context if available
        if has_request_context():
            self.endpoint = request.endpoint
            self.path = request.path
        else:
            self.endpoint = None
            self.path = None

        self._log_error()
        self._update_metrics()

    def _log_error(self) -> None:
        """Log error with structured logging."""
        log_data = {
            'error_code': self.code,
            'error_category': self.category.value,
            'error_severity': self.severity.value,
            'correlation_id': self.correlation_id,
            'http_status': self.http_status,
            'endpoint': self.endpoint,
            'path': self.path,
            'details': self.details,
        }

        if self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            logger.error(self.message, **log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning(self.message, **log_data)
        else:
            logger.info(self.message, **log_data)

    def _update_metrics(self) -> None:
        """Update Prometheus metrics for error tracking."""
        error_counter.labels(
            error_type=self.code,
            error_category=self.category.value
        ).inc()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary format for logs and debugging output.

        Returns:
            Dictionary representation of the error
        """
        return {
            'error': True,
            'message': self.message,
            'code': self.code,
            'category': self.category.value,
            'correlation_id': self.correlation_id,
            'timestamp': self.timestamp,
            'details': self.details,
        }


class ConfigurationError(BaseApplicationError):
    """Raised for malformed field configuration or invalid settings."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            http_status=500,
            **kwargs
        )


class UploadError(BaseApplicationError):
    """
    Base class for failures raised while processing an upload request.

    Every subclass pins a ``kind`` that the error mapper uses to pick the
    caller-visible status and message.
    """

    kind: ErrorKind = ErrorKind.STORAGE_FAILURE

    def __init__(
        self,
        message: str = "Upload failed",
        category: ErrorCategory = ErrorCategory.VALIDATION,
        severity: ErrorSeverity = ErrorSeverity.LOW,
        **kwargs
    ):
        kwargs.setdefault('code', self.kind.value)
        super().__init__(
            message=message,
            category=category,
            severity=severity,
            **kwargs
        )


class InvalidSubfolderError(UploadError):
    """Configured subfolder resolves outside the upload root."""

    kind = ErrorKind.INVALID_SUBFOLDER

    def __init__(self, subfolder: Optional[str] = None, **kwargs):
        super().__init__(
            message="Upload subfolder escapes the upload root",
            severity=ErrorSeverity.HIGH,
            **kwargs
        )
        if subfolder is not None:
            self.details['subfolder'] = subfolder


class LimitExceededError(UploadError):
    """More files were submitted for a field than its max_count allows."""

    kind = ErrorKind.LIMIT_EXCEEDED

    def __init__(self, field: str, submitted: Optional[int] = None,
                 max_count: Optional[int] = None, **kwargs):
        super().__init__(message=f"File limit exceeded for field '{field}'", **kwargs)
        self.field = field
        self.details['field'] = field
        if submitted is not None:
            self.details['submitted'] = submitted
        if max_count is not None:
            self.details['max_count'] = max_count


class InvalidTypeError(UploadError):
    """Declared mimetype is not an image type."""

    kind = ErrorKind.INVALID_TYPE

    def __init__(self, mimetype: Optional[str] = None, field: Optional[str] = None, **kwargs):
        super().__init__(message="Only image uploads are accepted", **kwargs)
        self.details['mimetype'] = mimetype
        if field:
            self.details['field'] = field


class InvalidImageError(UploadError):
    """The codec could not determine a source format for the buffer."""

    kind = ErrorKind.INVALID_IMAGE

    def __init__(self, reason: Optional[str] = None, **kwargs):
        super().__init__(message="Invalid or unreadable image data", **kwargs)
        if reason:
            self.details['reason'] = reason


class CodecFailureError(UploadError):
    """Decoding, transforming, or encoding an image failed."""

    kind = ErrorKind.CODEC_FAILURE

    def __init__(self, message: str = "Image encoding failed",
                 output_format: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.PROCESSING,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )
        if output_format:
            self.details['output_format'] = output_format


class StorageError(UploadError):
    """Filesystem operation under the upload root failed."""

    kind = ErrorKind.STORAGE_FAILURE

    def __init__(self, message: str = "File storage operation failed",
                 storage_operation: Optional[str] = None,
                 storage_path: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.SYSTEM,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )
        if storage_operation:
            self.details['storage_operation'] = storage_operation
        if storage_path:
            self.details['storage_path'] = storage_path


def safe_str(value: Any, max_length: int = 1000) -> str:
    """
    Safely convert value to string with length limits for error messages.

    Args:
        value: Value to convert to string
        max_length: Maximum string length

    Returns:
        Safe string representation
    """
    try:
        str_value = str(value)
    except Exception:
        return "<unable to convert to string>"
    if len(str_value) > max_length:
        return str_value[:max_length] + "..."
    return str_value


__all__ = [
    'BaseApplicationError',
    'ConfigurationError',
    'UploadError',
    'InvalidSubfolderError',
    'LimitExceededError',
    'InvalidTypeError',
    'InvalidImageError',
    'CodecFailureError',
    'StorageError',
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorKind',
    'safe_str'
]
