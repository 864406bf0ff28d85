"""
End-to-end upload workflows against a real filesystem and the Pillow codec.
"""

import re

import pytest
from PIL import Image

from imgflow.uploads import UploadOptions, UploadOrchestrator, map_error
from imgflow.utils.exceptions import InvalidTypeError

pytestmark = pytest.mark.integration

UUID_PNG = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[0-9a-f]{4}-[0-9a-f]{12}\.png$')


@pytest.fixture
def avatar_orchestrator(upload_root):
    return UploadOrchestrator(UploadOptions(
        upload_root=upload_root,
        fields={'avatar': {'dir': 'avatars', 'maxCount': 1}}
    ))


class TestAvatarWorkflow:

    def test_valid_png_is_persisted(self, avatar_orchestrator, upload_root, png_bytes, incoming):
        result = avatar_orchestrator.process({'avatar': [incoming(png_bytes)]})

        assert set(result) == {'avatar'}
        assert UUID_PNG.match(result['avatar'])

        saved = upload_root / "avatars" / result['avatar']
        with Image.open(saved) as image:
            assert image.format == "PNG"
            assert image.size == (10, 10)

    def test_text_plain_is_rejected(self, avatar_orchestrator, upload_root, png_bytes, incoming):
        with pytest.raises(InvalidTypeError) as exc_info:
            avatar_orchestrator.process({'avatar': [incoming(png_bytes, mimetype="text/plain")]})

        response = map_error(exc_info.value)
        assert response.status == 400
        assert response.message == "Faqat rasm yuborish mumkin."

        avatars = upload_root / "avatars"
        assert not avatars.exists() or list(avatars.iterdir()) == []

    def test_repeated_uploads_never_collide(self, avatar_orchestrator, upload_root, png_bytes, incoming):
        names = {avatar_orchestrator.process({'avatar': [incoming(png_bytes)]})['avatar']
                 for _ in range(5)}

        assert len(names) == 5
        assert sorted(p.name for p in (upload_root / "avatars").iterdir()) == sorted(names)


class TestGalleryWorkflow:

    def test_mixed_formats_normalized_to_jpeg(self, upload_root, make_image, incoming):
        orchestrator = UploadOrchestrator(UploadOptions(
            upload_root=upload_root,
            fields={'gallery': {
                'dir': 'users/7/gallery',
                'maxCount': 3,
                'resize': {'width': 20},
                'output': {'format': 'jpg', 'quality': 75},
            }}
        ))

        result = orchestrator.process({'gallery': [
            incoming(make_image('PNG', size=(40, 40), mode='RGBA'), field='gallery'),
            incoming(make_image('WEBP', size=(10, 10)), field='gallery', mimetype="image/webp"),
        ]})

        names = result['gallery']
        assert [n.rsplit('.', 1)[1] for n in names] == ["jpeg", "jpeg"]

        directory = upload_root / "users" / "7" / "gallery"
        with Image.open(directory / names[0]) as first:
            assert first.format == "JPEG"
            assert first.size == (20, 20)
        with Image.open(directory / names[1]) as second:
            # smaller than the requested width, never enlarged
            assert second.size == (10, 10)
