"""
Unit tests for the Pillow-backed image codec.

Images are generated in memory with Pillow; assertions decode the codec output
again to check format, dimensions and pixel content.
"""

import io

import pytest
import structlog
from PIL import Image

from imgflow.processing.codec import ImageCodec, PillowCodec, apply_geometry, can_write
from imgflow.processing.planner import ResizeGeometry, TransformPlan
from imgflow.utils.exceptions import CodecFailureError, InvalidImageError

logger = structlog.get_logger("tests.unit.test_codec")

pytestmark = pytest.mark.unit


def decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def geometry(width=None, height=None, fit='cover', without_enlargement=True) -> ResizeGeometry:
    return ResizeGeometry(width=width, height=height, fit=fit,
                          without_enlargement=without_enlargement)


@pytest.fixture
def codec():
    return PillowCodec()


class TestProbeFormat:

    def test_png(self, codec, png_bytes):
        assert codec.probe_format(png_bytes) == "png"

    def test_jpeg(self, codec, jpeg_bytes):
        assert codec.probe_format(jpeg_bytes) == "jpeg"

    def test_multi_picture_jpeg_reported_as_jpeg(self, codec, mpo_bytes):
        assert codec.probe_format(mpo_bytes) == "jpeg"

    def test_detects_content_not_declared_type(self, codec, make_image):
        assert codec.probe_format(make_image('WEBP')) == "webp"

    @pytest.mark.parametrize("payload", [b"", b"hello world"])
    def test_unidentifiable_data(self, codec, payload):
        with pytest.raises(InvalidImageError):
            codec.probe_format(payload)

    def test_pixel_limit(self, make_image):
        codec = PillowCodec(max_image_pixels=50)

        with pytest.raises(InvalidImageError) as exc_info:
            codec.probe_format(make_image(size=(10, 10)))

        assert "limit" in exc_info.value.details['reason']

    def test_satisfies_protocol(self, codec):
        assert isinstance(codec, ImageCodec)


class TestEncode:
    """Tests for PillowCodec.encode."""

    def test_reencode_preserving_format(self, codec, png_bytes):
        data = codec.encode(png_bytes, TransformPlan("png", "png"))
        image = decode(data)

        assert image.format == "PNG"
        assert image.size == (10, 10)

    def test_convert_png_to_jpeg_flattens_alpha_onto_white(self, codec, make_image):
        transparent = make_image('PNG', mode='RGBA', color=(0, 0, 0, 0))

        image = decode(codec.encode(transparent, TransformPlan("png", "jpeg", quality=90)))

        assert image.format == "JPEG"
        assert image.mode == "RGB"
        r, g, b = image.getpixel((5, 5))
        assert min(r, g, b) > 240

    def test_png_compression_level(self, codec, png_bytes):
        data = codec.encode(png_bytes, TransformPlan("png", "png", compression_level=9))
        assert decode(data).format == "PNG"

    def test_multi_picture_jpeg_reencoded_as_jpeg(self, codec, mpo_bytes):
        image = decode(codec.encode(mpo_bytes, TransformPlan("jpeg", "jpeg", quality=50)))

        assert image.format == "JPEG"
        assert image.size == (10, 10)

    def test_webp_output(self, codec, jpeg_bytes):
        data = codec.encode(jpeg_bytes, TransformPlan("jpeg", "webp", quality=60))
        assert decode(data).format == "WEBP"

    def test_unsupported_output_format(self, codec, png_bytes):
        with pytest.raises(CodecFailureError) as exc_info:
            codec.encode(png_bytes, TransformPlan("png", "heic-unknown"))

        assert exc_info.value.details['output_format'] == "heic-unknown"

    def test_truncated_data_fails(self, codec):
        buffer = io.BytesIO()
        Image.effect_noise((128, 128), 64).save(buffer, format='PNG')
        data = buffer.getvalue()

        with pytest.raises(CodecFailureError):
            codec.encode(data[:len(data) // 2], TransformPlan("png", "png"))

    def test_exif_orientation_applied(self, codec, make_image):
        # orientation 6 rotates 90 degrees, so 20x10 becomes 10x20
        data = make_image('JPEG', size=(20, 10), exif_orientation=6)

        image = decode(codec.encode(data, TransformPlan("jpeg", "jpeg")))

        assert image.size == (10, 20)

    def test_resize_applied(self, codec, make_image):
        data = make_image('PNG', size=(40, 20))
        plan = TransformPlan("png", "png", resize=geometry(width=10, fit='inside'))

        assert decode(codec.encode(data, plan)).size == (10, 5)

        logger.info("Codec resize test passed", output_size="10x5")


class TestApplyGeometry:
    """Fit policies on a 40x20 source image."""

    @pytest.fixture
    def source(self):
        return Image.new('RGB', (40, 20), (0, 128, 255))

    def test_no_geometry(self, source):
        assert apply_geometry(source, None) is source

    def test_cover_crops_to_exact_box(self, source):
        assert apply_geometry(source, geometry(10, 10, 'cover')).size == (10, 10)

    def test_contain_letterboxes_to_exact_box(self, source):
        result = apply_geometry(source, geometry(10, 10, 'contain'))

        assert result.size == (10, 10)
        assert result.getpixel((5, 0)) == (0, 0, 0)
        assert result.getpixel((5, 5)) != (0, 0, 0)

    def test_fill_stretches(self, source):
        assert apply_geometry(source, geometry(10, 10, 'fill')).size == (10, 10)

    def test_inside_bounds_both_dimensions(self, source):
        assert apply_geometry(source, geometry(10, 10, 'inside')).size == (10, 5)

    def test_outside_covers_without_crop(self, source):
        assert apply_geometry(source, geometry(10, 10, 'outside')).size == (20, 10)

    def test_single_dimension_keeps_aspect_ratio(self, source):
        assert apply_geometry(source, geometry(height=10, fit='inside')).size == (20, 10)

    @pytest.mark.parametrize("fit", ['cover', 'contain', 'fill', 'inside', 'outside'])
    def test_without_enlargement_never_upscales(self, source, fit):
        result = apply_geometry(source, geometry(100, 100, fit, without_enlargement=True))

        assert result.size[0] <= 40
        assert result.size[1] <= 20

    def test_enlargement_allowed_when_disabled(self, source):
        result = apply_geometry(source, geometry(width=80, fit='inside', without_enlargement=False))
        assert result.size == (80, 40)


class TestCanWrite:

    @pytest.mark.parametrize("fmt", ["jpeg", "png", "webp"])
    def test_common_formats(self, fmt):
        assert can_write(fmt)

    def test_unknown_format(self):
        assert not can_write("not-a-format")
