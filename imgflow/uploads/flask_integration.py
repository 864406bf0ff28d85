"""
Flask glue for the upload pipeline.

``imgflow_upload`` wraps a view so that the configured multipart fields are
collected from ``request.files``, processed by the orchestrator, and exposed to
the view as ``g.uploads``. Failures never reach the view; they are mapped to a
JSON body ``{"ok": false, "message": ...}`` with the mapped status code.

Example:
    options = UploadOptions(fields={'avatar': 'avatars'})

    @app.route('/profile', methods=['POST'])
    @imgflow_upload(options)
    def update_profile():
        return jsonify(avatar=g.uploads.get('avatar'))
"""

import functools
from typing import Callable, Dict, List, Optional, TypeVar

import structlog
from flask import Flask, g, jsonify, request
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import RequestEntityTooLarge

from imgflow.config.settings import UploadSettings, get_settings
from imgflow.monitoring.logging import configure_logging, set_correlation_id
from imgflow.uploads.errors import FALLBACK_MESSAGE, ErrorResponse, map_error
from imgflow.uploads.orchestrator import IncomingFile, UploadOptions, UploadOrchestrator

logger = structlog.get_logger(__name__)

F = TypeVar('F', bound=Callable)


def incoming_from_storage(field: str, storage: FileStorage) -> IncomingFile:
    """Read a werkzeug ``FileStorage`` into an ``IncomingFile``."""
    storage.stream.seek(0)
    return IncomingFile(
        field=field,
        mimetype=storage.mimetype or '',
        buffer=storage.read(),
        filename=storage.filename
    )


def collect_files(options: UploadOptions) -> Dict[str, List[IncomingFile]]:
    """Collect the configured fields from the current request's files."""
    collected: Dict[str, List[IncomingFile]] = {}
    for field in options.fields:
        # browsers submit an empty part for an untouched file input
        storages = [s for s in request.files.getlist(field) if s and s.filename]
        if storages:
            collected[field] = [incoming_from_storage(field, s) for s in storages]
    return collected


def imgflow_upload(options: UploadOptions) -> Callable[[F], F]:
    """
    Decorator running the upload pipeline before the wrapped view.

    Args:
        options: Upload configuration for this endpoint

    Returns:
        Decorator exposing ``{field: filename | [filenames]}`` as ``g.uploads``
    """
    orchestrator = UploadOrchestrator(options)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            set_correlation_id(request.headers.get('X-Correlation-ID'))
            # oversized bodies raise RequestEntityTooLarge here, left to Flask
            files_by_field = collect_files(options)
            try:
                g.uploads = orchestrator.process(files_by_field)
            except Exception as e:
                error = map_error(e, options.on_error)
                logger.info(
                    "Upload request failed",
                    endpoint=request.endpoint,
                    status=error.status,
                    error_type=e.__class__.__name__
                )
                return jsonify(error.to_dict()), error.status
            return func(*args, **kwargs)

        return wrapper

    return decorator


def init_app(app: Flask, settings: Optional[UploadSettings] = None) -> UploadSettings:
    """
    Apply imgflow settings to a Flask application.

    Sets ``MAX_CONTENT_LENGTH`` unless the application already defines it,
    configures structured logging, and answers oversized requests with the
    standard upload error body.
    """
    settings = settings or get_settings()
    if app.config.get('MAX_CONTENT_LENGTH') is None:
        app.config['MAX_CONTENT_LENGTH'] = settings.max_content_length

    configure_logging(settings.log_level, settings.log_format)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(error):
        logger.warning(
            "Upload request too large",
            path=request.path,
            max_content_length=app.config.get('MAX_CONTENT_LENGTH')
        )
        response = ErrorResponse(status=413, message=FALLBACK_MESSAGE)
        return jsonify(response.to_dict()), response.status

    app.extensions['imgflow'] = settings
    return settings


__all__ = [
    'collect_files',
    'imgflow_upload',
    'incoming_from_storage',
    'init_app'
]
