"""
Uploads package: orchestration, error mapping and Flask integration.
"""

from imgflow.uploads.errors import ErrorResponse, map_error
from imgflow.uploads.flask_integration import imgflow_upload, init_app
from imgflow.uploads.orchestrator import IncomingFile, UploadOptions, UploadOrchestrator

__all__ = [
    'ErrorResponse',
    'map_error',
    'imgflow_upload',
    'init_app',
    'IncomingFile',
    'UploadOptions',
    'UploadOrchestrator'
]
