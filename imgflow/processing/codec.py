"""
Image codec abstraction and the Pillow-backed implementation.

The orchestrator only depends on the ``ImageCodec`` protocol: ``probe_format``
detects the real format of an uploaded buffer and ``encode`` applies a
``TransformPlan`` and returns the bytes to persist. ``PillowCodec`` is the
default implementation.

Resize policies:
- cover: scale to cover the box, then crop centred
- contain: scale to fit inside the box, then letterbox
- fill: stretch to the exact box, ignoring aspect ratio
- inside: scale to fit inside the box, no padding
- outside: scale to cover the box, no cropping
"""

import io
from typing import Optional, Protocol, Tuple, runtime_checkable

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from imgflow.processing.planner import ResizeGeometry, TransformPlan, normalize_format
from imgflow.utils.exceptions import CodecFailureError, InvalidImageError

logger = structlog.get_logger(__name__)

RESAMPLE = Image.Resampling.LANCZOS

# Pillow registers format plugins under upper-case names
_PILLOW_FORMAT_NAMES = {
    'jpeg': 'JPEG',
    'png': 'PNG',
    'webp': 'WEBP',
    'avif': 'AVIF',
    'gif': 'GIF',
    'tiff': 'TIFF',
    'bmp': 'BMP',
}


@runtime_checkable
class ImageCodec(Protocol):
    """Format detection and encoding used by the upload orchestrator."""

    def probe_format(self, buffer: bytes) -> str:
        ...

    def encode(self, buffer: bytes, plan: TransformPlan) -> bytes:
        ...


def _pillow_format(output_format: str) -> str:
    return _PILLOW_FORMAT_NAMES.get(output_format, output_format.upper())


def can_write(output_format: str) -> bool:
    """Return True when the installed Pillow can save ``output_format``."""
    Image.init()
    return _pillow_format(output_format) in Image.SAVE


def _target_box(size: Tuple[int, int], geometry: ResizeGeometry) -> Tuple[int, int]:
    src_w, src_h = size
    width, height = geometry.width, geometry.height
    if width and not height:
        height = max(1, round(src_h * width / src_w))
    elif height and not width:
        width = max(1, round(src_w * height / src_h))
    return width, height


def _scaled(size: Tuple[int, int], scale: float) -> Tuple[int, int]:
    return max(1, round(size[0] * scale)), max(1, round(size[1] * scale))


def _pad_color(image: Image.Image):
    if image.mode in ('RGBA', 'LA'):
        return (0,) * len(image.mode)
    if image.mode == 'L':
        return 0
    return (0, 0, 0)


def _normalize_mode(image: Image.Image) -> Image.Image:
    if image.mode in ('RGB', 'RGBA', 'L', 'LA'):
        return image
    if image.mode in ('P', 'PA') or 'transparency' in image.info:
        return image.convert('RGBA')
    return image.convert('RGB')


def apply_geometry(image: Image.Image, geometry: Optional[ResizeGeometry]) -> Image.Image:
    """
    Resize ``image`` according to ``geometry``.

    With ``without_enlargement`` set, the image is never scaled up; cover and
    outside then work against a box clamped to the source size.
    """
    if geometry is None:
        return image

    src_w, src_h = image.size
    box_w, box_h = _target_box(image.size, geometry)
    fits_inside = src_w <= box_w and src_h <= box_h

    if geometry.fit == 'fill':
        if geometry.without_enlargement and fits_inside:
            return image
        return image.resize((box_w, box_h), RESAMPLE)

    if geometry.fit == 'inside':
        scale = min(box_w / src_w, box_h / src_h)
        if geometry.without_enlargement:
            scale = min(scale, 1.0)
        return image if scale == 1.0 else image.resize(_scaled(image.size, scale), RESAMPLE)

    if geometry.fit == 'outside':
        scale = max(box_w / src_w, box_h / src_h)
        if geometry.without_enlargement:
            scale = min(scale, 1.0)
        return image if scale == 1.0 else image.resize(_scaled(image.size, scale), RESAMPLE)

    if geometry.fit == 'contain':
        if geometry.without_enlargement and fits_inside:
            return image
        return ImageOps.pad(
            image,
            (box_w, box_h),
            method=RESAMPLE,
            color=_pad_color(image),
            centering=(0.5, 0.5)
        )

    # cover
    if geometry.without_enlargement:
        box_w, box_h = min(box_w, src_w), min(box_h, src_h)
    if (box_w, box_h) == image.size:
        return image
    return ImageOps.fit(image, (box_w, box_h), method=RESAMPLE, centering=(0.5, 0.5))


def _flatten_alpha(image: Image.Image) -> Image.Image:
    if image.mode in ('RGB', 'L'):
        return image
    rgba = image.convert('RGBA')
    background = Image.new('RGB', rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.split()[-1])
    return background


class PillowCodec:
    """
    ``ImageCodec`` backed by Pillow.

    Args:
        max_image_pixels: Reject images with more pixels than this. ``None``
            leaves Pillow's own decompression bomb limit in charge.
    """

    def __init__(self, max_image_pixels: Optional[int] = None):
        self.max_image_pixels = max_image_pixels

    def _check_pixels(self, image: Image.Image) -> None:
        width, height = image.size
        if self.max_image_pixels and width * height > self.max_image_pixels:
            raise InvalidImageError(
                reason=f"image has {width * height} pixels, limit is {self.max_image_pixels}"
            )

    def probe_format(self, buffer: bytes) -> str:
        """
        Detect the format of ``buffer`` from its content.

        Raises:
            InvalidImageError: When no format can be determined
        """
        try:
            with Image.open(io.BytesIO(buffer)) as image:
                self._check_pixels(image)
                detected = image.format
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise InvalidImageError(reason=str(e)) from e

        if not detected:
            raise InvalidImageError(reason="format could not be determined")
        return normalize_format(detected)

    def encode(self, buffer: bytes, plan: TransformPlan) -> bytes:
        """
        Decode ``buffer``, apply ``plan`` and return the encoded output bytes.

        Raises:
            InvalidImageError: When the image exceeds the pixel limit
            CodecFailureError: When decoding, resizing or encoding fails
        """
        if not can_write(plan.output_format):
            raise CodecFailureError(
                f"Unsupported output format: {plan.output_format}",
                output_format=plan.output_format
            )

        try:
            with Image.open(io.BytesIO(buffer)) as source:
                self._check_pixels(source)
                source.load()
                image = ImageOps.exif_transpose(source)
        except InvalidImageError:
            raise
        except Image.DecompressionBombError as e:
            raise InvalidImageError(reason=str(e)) from e
        except Exception as e:
            raise CodecFailureError(
                f"Image decoding failed: {e}",
                output_format=plan.output_format
            ) from e

        try:
            image = apply_geometry(_normalize_mode(image), plan.resize)

            save_kwargs = {'format': _pillow_format(plan.output_format)}
            if plan.output_format == 'jpeg':
                image = _flatten_alpha(image)
                save_kwargs['optimize'] = True
            if plan.quality is not None:
                save_kwargs['quality'] = plan.quality
            if plan.compression_level is not None:
                save_kwargs['compress_level'] = plan.compression_level

            output = io.BytesIO()
            image.save(output, **save_kwargs)
        except Exception as e:
            raise CodecFailureError(
                f"Image encoding failed: {e}",
                output_format=plan.output_format
            ) from e

        data = output.getvalue()
        logger.debug(
            "Image encoded",
            source_format=plan.source_format,
            output_format=plan.output_format,
            output_size=f"{image.size[0]}x{image.size[1]}",
            output_bytes=len(data)
        )
        return data


__all__ = [
    'ImageCodec',
    'PillowCodec',
    'apply_geometry',
    'can_write'
]
