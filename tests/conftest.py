"""
Global pytest configuration and fixtures for the imgflow test suite.

Provides test markers, an isolated upload root per test, Pillow-generated image
payloads, settings isolation from the process environment, and a Flask
application wired with the upload decorator.

Fixture overview:
- upload_root: fresh directory under pytest's tmp_path
- make_image: factory producing encoded image bytes of any size/mode/format
- png_bytes / jpeg_bytes / rgba_png_bytes: ready-made 10x10 payloads
- incoming: factory for IncomingFile instances
- app / client: Flask application exposing upload endpoints
"""

import io
from typing import Callable, Optional, Tuple

import pytest
from flask import Flask, g, jsonify
from PIL import Image

from imgflow.config.settings import UploadSettings, reset_settings
from imgflow.uploads import IncomingFile, UploadOptions, imgflow_upload, init_app

IMGFLOW_ENV_VARS = (
    'IMGFLOW_UPLOAD_ROOT',
    'IMGFLOW_MAX_CONTENT_LENGTH',
    'IMGFLOW_MAX_IMAGE_PIXELS',
    'IMGFLOW_OVERWRITE',
    'LOG_LEVEL',
    'LOG_FORMAT',
)


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        "markers",
        "unit: Unit tests with isolated component testing"
    )
    config.addinivalue_line(
        "markers",
        "integration: Integration tests through the Flask request cycle"
    )
    config.addinivalue_line(
        "markers",
        "security: Security tests for upload path sandboxing"
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep cached settings and IMGFLOW_* variables from leaking between tests."""
    for name in IMGFLOW_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def upload_root(tmp_path):
    """Empty upload root directory for one test."""
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """
    Factory producing encoded image bytes generated with Pillow.

    Usage:
        data = make_image(fmt='JPEG', size=(40, 20))
    """
    def _make(fmt: str = 'PNG', size: Tuple[int, int] = (10, 10), mode: str = 'RGB',
              color=None, exif_orientation: Optional[int] = None) -> bytes:
        if color is None:
            color = (255, 0, 0, 128) if mode == 'RGBA' else (255, 0, 0)
        image = Image.new(mode, size, color)
        buffer = io.BytesIO()
        save_kwargs = {'format': fmt}
        if exif_orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = exif_orientation
            save_kwargs['exif'] = exif
        image.save(buffer, **save_kwargs)
        return buffer.getvalue()

    return _make


@pytest.fixture
def png_bytes(make_image) -> bytes:
    return make_image('PNG')


@pytest.fixture
def jpeg_bytes(make_image) -> bytes:
    return make_image('JPEG')


@pytest.fixture
def mpo_bytes() -> bytes:
    """Two-frame multi-picture JPEG, the layout many phone cameras write."""
    first = Image.new('RGB', (10, 10), (255, 0, 0))
    second = Image.new('RGB', (10, 10), (0, 0, 255))
    buffer = io.BytesIO()
    first.save(buffer, format='MPO', save_all=True, append_images=[second])
    return buffer.getvalue()


@pytest.fixture
def rgba_png_bytes(make_image) -> bytes:
    return make_image('PNG', mode='RGBA')


@pytest.fixture
def incoming() -> Callable[..., IncomingFile]:
    """Factory for IncomingFile instances."""
    def _incoming(buffer: bytes, field: str = 'avatar', mimetype: str = 'image/png',
                  filename: Optional[str] = None) -> IncomingFile:
        return IncomingFile(field=field, mimetype=mimetype, buffer=buffer, filename=filename)

    return _incoming


@pytest.fixture
def test_settings(upload_root) -> UploadSettings:
    return UploadSettings(
        upload_root=str(upload_root),
        max_content_length=1024 * 1024,
        log_level='DEBUG',
        log_format='console'
    )


@pytest.fixture
def app(upload_root, test_settings) -> Flask:
    """
    Flask application with upload endpoints.

    Endpoints:
    - POST /profile: avatar (single) and gallery (up to 3 webp files)
    - POST /custom-error: avatar with an on_error hook overriding the response
    """
    app = Flask(__name__)
    app.config['TESTING'] = True
    init_app(app, test_settings)

    profile_options = UploadOptions(
        upload_root=upload_root,
        fields={
            'avatar': {'dir': 'avatars', 'maxCount': 1,
                       'resize': {'width': 8, 'height': 8}},
            'gallery': {'dir': 'gallery', 'maxCount': 3,
                        'output': {'format': 'webp', 'quality': 80}},
        }
    )

    custom_options = UploadOptions(
        upload_root=upload_root,
        fields={'avatar': 'avatars'},
        on_error=lambda exc: {'status': 422, 'message': 'Rasm qabul qilinmadi.'}
    )

    @app.route('/profile', methods=['POST'])
    @imgflow_upload(profile_options)
    def profile():
        return jsonify(ok=True, uploads=g.uploads)

    @app.route('/custom-error', methods=['POST'])
    @imgflow_upload(custom_options)
    def custom_error():
        return jsonify(ok=True, uploads=g.uploads)

    return app


@pytest.fixture
def client(app):
    return app.test_client()
