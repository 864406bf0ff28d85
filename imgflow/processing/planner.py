"""
Transformation planning for uploaded images.

``build_plan`` turns a field's declarative resize/output configuration and the
format detected from the uploaded bytes into a ``TransformPlan``: the output
format, the resize geometry, and the encoder parameters. The planner performs
no I/O. It never picks a fixed output format and never invents numeric encoder
defaults; whatever is left unset is up to the codec.
"""

from dataclasses import dataclass
from numbers import Real
from typing import Optional

from imgflow.config.fields import OutputOptions, ResizeOptions

QUALITY_FORMATS = frozenset({'jpeg', 'webp', 'avif'})
COMPRESSION_FORMATS = frozenset({'png'})

FORMAT_ALIASES = {
    'jpg': 'jpeg',
    'mpo': 'jpeg',
}

DEFAULT_POSITION = 'centre'


@dataclass(frozen=True)
class ResizeGeometry:
    width: Optional[int]
    height: Optional[int]
    fit: str
    without_enlargement: bool = True
    position: str = DEFAULT_POSITION


@dataclass(frozen=True)
class TransformPlan:
    source_format: str
    output_format: str
    resize: Optional[ResizeGeometry] = None
    quality: Optional[int] = None
    compression_level: Optional[int] = None

    @property
    def extension(self) -> str:
        return self.output_format


def normalize_format(fmt: str) -> str:
    """
    Lowercase a format token and map JPEG aliases to ``jpeg``.

    Pillow identifies multi-picture JPEGs (most phone camera photos) as
    ``mpo``; they are plain JPEG files to every consumer.
    """
    token = str(fmt).strip().lower()
    return FORMAT_ALIASES.get(token, token)


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _plan_resize(resize: Optional[ResizeOptions]) -> Optional[ResizeGeometry]:
    if resize is None or not (resize.width or resize.height):
        return None

    fit = resize.fit
    if not fit:
        fit = 'cover' if (resize.width and resize.height) else 'inside'

    without_enlargement = resize.without_enlargement
    if not isinstance(without_enlargement, bool):
        without_enlargement = True

    return ResizeGeometry(
        width=resize.width or None,
        height=resize.height or None,
        fit=fit,
        without_enlargement=without_enlargement,
    )


def build_plan(
    source_format: str,
    resize: Optional[ResizeOptions] = None,
    output: Optional[OutputOptions] = None
) -> TransformPlan:
    """
    Build the transformation plan for one file.

    Args:
        source_format: Format detected from the file bytes (e.g. ``png``)
        resize: Field resize configuration, if any
        output: Field output configuration, if any

    Returns:
        Immutable TransformPlan
    """
    detected = normalize_format(source_format)
    requested = output.format if output is not None else None
    final_format = normalize_format(requested) if requested else detected

    quality = None
    compression_level = None
    if output is not None:
        if final_format in QUALITY_FORMATS and _is_number(output.quality):
            quality = int(output.quality)
        elif final_format in COMPRESSION_FORMATS and _is_number(output.compression_level):
            compression_level = int(output.compression_level)

    return TransformPlan(
        source_format=detected,
        output_format=final_format,
        resize=_plan_resize(resize),
        quality=quality,
        compression_level=compression_level,
    )


__all__ = [
    'ResizeGeometry',
    'TransformPlan',
    'normalize_format',
    'build_plan',
    'QUALITY_FORMATS',
    'COMPRESSION_FORMATS'
]
