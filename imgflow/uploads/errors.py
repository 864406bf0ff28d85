"""
Translation of upload failures into caller-facing error responses.

``map_error`` picks a status code and a human-readable message for any
exception raised by the upload pipeline. Messages default to the canonical
Uzbek texts below; an ``on_error`` hook may override the status, the message,
or both.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from imgflow.utils.exceptions import ErrorKind, LimitExceededError, UploadError

logger = structlog.get_logger(__name__)

DEFAULT_STATUS = 400
FALLBACK_MESSAGE = "Upload xatoligi."

DEFAULT_MESSAGES = {
    ErrorKind.INVALID_TYPE: "Faqat rasm yuborish mumkin.",
    ErrorKind.INVALID_IMAGE: "Yaroqsiz rasm fayl.",
    ErrorKind.INVALID_SUBFOLDER: "Upload papka yo'li noto'g'ri.",
}


@dataclass(frozen=True)
class ErrorResponse:
    status: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'ok': False, 'message': self.message}


def default_message(exc: BaseException) -> str:
    """Canonical message for ``exc``; unknown failures get the generic one."""
    if isinstance(exc, LimitExceededError):
        return f"{exc.field} uchun fayl limiti oshdi."
    if isinstance(exc, UploadError):
        return DEFAULT_MESSAGES.get(exc.kind, FALLBACK_MESSAGE)
    return FALLBACK_MESSAGE


def _override(on_error: Optional[Callable[[BaseException], Any]], exc: BaseException):
    if on_error is None:
        return None, None
    try:
        result = on_error(exc)
    except Exception as hook_error:
        logger.error(
            "Upload error hook failed, using default response",
            error=str(hook_error),
            original_error=exc.__class__.__name__
        )
        return None, None

    if result is None:
        return None, None
    if isinstance(result, ErrorResponse):
        return result.status, result.message
    if isinstance(result, Mapping):
        return result.get('status'), result.get('message')

    logger.warning("Ignoring unsupported error hook result", result_type=type(result).__name__)
    return None, None


def map_error(exc: BaseException,
              on_error: Optional[Callable[[BaseException], Any]] = None) -> ErrorResponse:
    """
    Map an exception to an ``ErrorResponse``.

    Args:
        exc: Failure raised while handling an upload
        on_error: Optional hook returning ``None``, an ``ErrorResponse`` or a
            mapping with optional ``status`` and ``message``

    Returns:
        ErrorResponse with the override values where given, defaults otherwise
    """
    status, message = _override(on_error, exc)

    if not isinstance(status, int) or isinstance(status, bool):
        status = DEFAULT_STATUS
    if not isinstance(message, str) or not message:
        message = default_message(exc)

    return ErrorResponse(status=status, message=message)


__all__ = [
    'ErrorResponse',
    'DEFAULT_MESSAGES',
    'DEFAULT_STATUS',
    'FALLBACK_MESSAGE',
    'default_message',
    'map_error'
]
