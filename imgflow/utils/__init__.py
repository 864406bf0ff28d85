"""
Shared utilities: the imgflow exception hierarchy.
"""

from imgflow.utils.exceptions import (
    BaseApplicationError,
    CodecFailureError,
    ConfigurationError,
    ErrorCategory,
    ErrorKind,
    ErrorSeverity,
    InvalidImageError,
    InvalidSubfolderError,
    InvalidTypeError,
    LimitExceededError,
    StorageError,
    UploadError,
)

__all__ = [
    'BaseApplicationError',
    'CodecFailureError',
    'ConfigurationError',
    'ErrorCategory',
    'ErrorKind',
    'ErrorSeverity',
    'InvalidImageError',
    'InvalidSubfolderError',
    'InvalidTypeError',
    'LimitExceededError',
    'StorageError',
    'UploadError'
]
