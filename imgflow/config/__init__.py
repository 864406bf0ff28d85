"""
Configuration package: environment settings and per-field upload configuration.
"""

from imgflow.config.fields import (
    FieldSpec,
    OutputOptions,
    ResizeOptions,
    normalize_field_config,
    normalize_fields,
)
from imgflow.config.settings import UploadSettings, get_settings, reset_settings

__all__ = [
    'FieldSpec',
    'OutputOptions',
    'ResizeOptions',
    'normalize_field_config',
    'normalize_fields',
    'UploadSettings',
    'get_settings',
    'reset_settings'
]
