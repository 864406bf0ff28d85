"""
Upload orchestration: validate, transform and persist images per field.

``UploadOrchestrator.process`` walks the configured fields in configuration
order. For each field it enforces the file limit, resolves the sandboxed target
directory, and runs every submitted file through type validation, format
detection, planning, encoding and an atomic write. The call is all or nothing:
when anything fails (including ``KeyboardInterrupt`` and other abandonment),
every file written during the call is deleted before the error propagates.

Filenames are random UUIDs unless ``UploadOptions.file_name`` supplies one, and
files are created exclusively, so a request can only ever delete files it
created itself.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Union
from uuid import uuid4

import structlog
from werkzeug.utils import secure_filename

from imgflow.config.fields import FieldSpec, RawFieldConfig, normalize_fields
from imgflow.config.settings import get_settings
from imgflow.monitoring.metrics import (
    field_processing_time,
    files_processed_counter,
    rollback_counter,
)
from imgflow.processing.codec import ImageCodec, PillowCodec
from imgflow.processing.planner import build_plan
from imgflow.storage.sandbox import contains, ensure_dir, safe_resolve
from imgflow.utils.exceptions import (
    CodecFailureError,
    ConfigurationError,
    InvalidImageError,
    InvalidTypeError,
    LimitExceededError,
    StorageError,
    UploadError,
    safe_str,
)

logger = structlog.get_logger(__name__)

FieldResult = Union[str, List[str]]
FileNamer = Callable[..., Optional[str]]
ErrorHook = Callable[[BaseException], Any]


@dataclass(frozen=True)
class IncomingFile:
    """One uploaded file: its field, declared mimetype and raw bytes."""

    field: str
    mimetype: str
    buffer: bytes
    filename: Optional[str] = None


class UploadOptions:
    """
    Configuration of one upload endpoint.

    Args:
        upload_root: Root directory for every saved file. Defaults to the
            ``IMGFLOW_UPLOAD_ROOT`` setting.
        fields: Field name to configuration (directory string or mapping)
        file_name: Optional ``file_name(field=..., ext=...)`` callback. A falsy
            return value falls back to ``<uuid4>.<ext>``. Returned names must
            pass ``secure_filename`` unchanged and may not repeat within one
            upload call, even with ``overwrite``.
        on_error: Optional hook consulted by the error mapper
        codec: Image codec; defaults to ``PillowCodec``
        overwrite: Allow replacing existing files. Defaults to the
            ``IMGFLOW_OVERWRITE`` setting.
    """

    def __init__(
        self,
        upload_root: Optional[Union[str, os.PathLike]] = None,
        fields: Optional[Mapping[str, RawFieldConfig]] = None,
        file_name: Optional[FileNamer] = None,
        on_error: Optional[ErrorHook] = None,
        codec: Optional[ImageCodec] = None,
        overwrite: Optional[bool] = None
    ):
        if fields is None:
            raise ConfigurationError("Upload options require a field mapping")

        settings = None
        if upload_root is None or overwrite is None or codec is None:
            settings = get_settings()

        self.upload_root = Path(upload_root if upload_root is not None else settings.upload_root).resolve()
        self.fields: Dict[str, FieldSpec] = normalize_fields(fields)
        self.file_name = file_name
        self.on_error = on_error
        self.codec = codec if codec is not None else PillowCodec(settings.max_image_pixels)
        self.overwrite = overwrite if overwrite is not None else settings.overwrite


def _write_file(path: Path, data: bytes, overwrite: bool) -> None:
    """Write ``data`` to ``path`` through a fsynced temporary file in the same directory."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix='.imgflow-', suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if overwrite:
            os.replace(tmp_name, path)
        else:
            # link fails when the name is taken, unlike rename
            os.link(tmp_name, path)
    except FileExistsError as e:
        raise StorageError(
            f"File already exists: {path.name}",
            storage_operation="file_save",
            storage_path=str(path)
        ) from e
    except OSError as e:
        raise StorageError(
            f"File system error: {e}",
            storage_operation="file_save",
            storage_path=str(path)
        ) from e
    finally:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Temporary file cleanup failed", path=tmp_name, error=str(e))


class UploadOrchestrator:
    """Runs one upload request against an ``UploadOptions`` configuration."""

    def __init__(self, options: UploadOptions):
        self.options = options

    def process(self, files_by_field: Mapping[str, Sequence[IncomingFile]]) -> Dict[str, FieldResult]:
        """
        Validate, transform and persist the submitted files.

        Args:
            files_by_field: Submitted files grouped by field name, in submission order

        Returns:
            Field name to saved filename (``max_count == 1``) or list of filenames.
            Fields without submitted files are omitted.

        Raises:
            UploadError: First failure encountered; nothing from this call stays on disk
        """
        results: Dict[str, FieldResult] = {}
        completed: Dict[str, List[Path]] = {}
        claimed: Set[Path] = set()
        field = None

        try:
            for field, spec in self.options.fields.items():
                files = list(files_by_field.get(field) or ())
                if not files:
                    continue

                saved = self._process_field(field, spec, files, claimed)
                completed[field] = saved
                names = [path.name for path in saved]
                results[field] = names[0] if spec.max_count == 1 else names
        except BaseException as e:
            logger.warning(
                "Upload rejected",
                field=field,
                error_type=e.__class__.__name__,
                error_code=getattr(e, 'code', None)
            )
            for done_field, paths in completed.items():
                self._rollback(done_field, paths)
            raise

        return results

    def _process_field(self, field: str, spec: FieldSpec, files: List[IncomingFile],
                       claimed: Set[Path]) -> List[Path]:
        if len(files) > spec.max_count:
            files_processed_counter.labels(field=field, status='rejected').inc(len(files))
            raise LimitExceededError(field, submitted=len(files), max_count=spec.max_count)

        sandbox = safe_resolve(self.options.upload_root, spec.dir)
        target = ensure_dir(sandbox.target)

        saved: List[Path] = []
        with field_processing_time.labels(field=field).time():
            try:
                for incoming in files:
                    saved.append(self._process_file(field, spec, target, incoming, claimed))
            except BaseException:
                files_processed_counter.labels(field=field, status='failed').inc()
                self._rollback(field, saved)
                raise

        files_processed_counter.labels(field=field, status='saved').inc(len(saved))
        logger.info(
            "Upload field processed",
            field=field,
            directory=str(target),
            files=[path.name for path in saved]
        )
        return saved

    def _process_file(self, field: str, spec: FieldSpec, target: Path, incoming: IncomingFile,
                      claimed: Set[Path]) -> Path:
        mimetype = (incoming.mimetype or '').lower()
        if not mimetype.startswith('image/'):
            raise InvalidTypeError(mimetype=incoming.mimetype, field=field)

        codec = self.options.codec
        try:
            source_format = codec.probe_format(incoming.buffer)
        except UploadError:
            raise
        except Exception as e:
            raise InvalidImageError(reason=safe_str(e)) from e
        if not source_format:
            raise InvalidImageError(reason="format could not be determined")

        plan = build_plan(source_format, spec.resize, spec.output)

        try:
            data = codec.encode(incoming.buffer, plan)
        except UploadError:
            raise
        except Exception as e:
            raise CodecFailureError(
                f"Image encoding failed: {safe_str(e)}",
                output_format=plan.output_format
            ) from e

        path = self._target_path(field, target, plan.extension)
        if path in claimed:
            raise StorageError(
                f"File name already used in this upload: {path.name}",
                storage_operation="file_name",
                storage_path=str(path)
            )
        _write_file(path, data, self.options.overwrite)
        claimed.add(path)

        logger.info(
            "File saved",
            field=field,
            filename=path.name,
            original_filename=incoming.filename,
            source_format=plan.source_format,
            output_format=plan.output_format,
            file_size_kb=len(data) / 1024
        )
        return path

    def _target_path(self, field: str, target: Path, ext: str) -> Path:
        name = None
        if self.options.file_name is not None:
            name = self.options.file_name(field=field, ext=ext)
        if not name:
            return target / f"{uuid4()}.{ext}"

        name = str(name)
        if secure_filename(name) != name or not contains(target, target / name):
            raise StorageError(
                "Custom filename must be a plain, safe file name",
                storage_operation="file_name",
                storage_path=name
            )
        return target / name

    def _rollback(self, field: str, paths: List[Path]) -> None:
        if not paths:
            return

        rollback_counter.labels(field=field).inc()
        removed = 0
        for path in reversed(paths):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(
                    "Rollback deletion failed",
                    field=field,
                    path=str(path),
                    error=str(e)
                )
        logger.warning("Upload rolled back", field=field, removed=removed, attempted=len(paths))


__all__ = [
    'FieldResult',
    'IncomingFile',
    'UploadOptions',
    'UploadOrchestrator'
]
