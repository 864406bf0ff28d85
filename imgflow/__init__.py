"""
imgflow: image upload handling for Flask applications.

Validates uploaded images, resizes and re-encodes them per field configuration,
and stores them under a sandboxed upload root with all-or-nothing semantics.
"""

from imgflow.config.fields import FieldSpec, normalize_field_config
from imgflow.processing.codec import ImageCodec, PillowCodec
from imgflow.processing.planner import TransformPlan, build_plan
from imgflow.storage.sandbox import ensure_dir, safe_resolve
from imgflow.uploads import (
    ErrorResponse,
    IncomingFile,
    UploadOptions,
    UploadOrchestrator,
    imgflow_upload,
    init_app,
    map_error,
)
from imgflow.utils.exceptions import (
    CodecFailureError,
    ConfigurationError,
    ErrorKind,
    InvalidImageError,
    InvalidSubfolderError,
    InvalidTypeError,
    LimitExceededError,
    StorageError,
    UploadError,
)

__version__ = "1.0.0"

__all__ = [
    'FieldSpec',
    'normalize_field_config',
    'ImageCodec',
    'PillowCodec',
    'TransformPlan',
    'build_plan',
    'ensure_dir',
    'safe_resolve',
    'ErrorResponse',
    'IncomingFile',
    'UploadOptions',
    'UploadOrchestrator',
    'imgflow_upload',
    'init_app',
    'map_error',
    'CodecFailureError',
    'ConfigurationError',
    'ErrorKind',
    'InvalidImageError',
    'InvalidSubfolderError',
    'InvalidTypeError',
    'LimitExceededError',
    'StorageError',
    'UploadError',
    '__version__'
]
