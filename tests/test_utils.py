"""
Attachment storage and data URI tests
"""

import base64
import io
import os
from unittest.mock import patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from imagegen_backend.errors import IOCleanupError
from imagegen_backend.utils import (
    ImageAttachment,
    detect_mime_type,
    encode_file_data_uri,
    remove_attachments,
    save_upload,
    truncate_data_uris,
)


def _upload(data: bytes, content_type: str = "image/png", filename: str = "photo.png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.mark.unit
class TestMimeDetection:

    def test_declared_image_type_wins(self, make_attachment):
        attachment = make_attachment(b"not really a webp", content_type="image/webp")

        assert detect_mime_type(attachment.path, attachment.content_type) == "image/webp"

    def test_sniffs_when_declared_type_is_not_an_image(self, make_attachment, png_bytes):
        attachment = make_attachment(png_bytes, content_type="application/octet-stream")

        assert detect_mime_type(attachment.path, attachment.content_type) == "image/png"

    def test_falls_back_to_jpeg(self, make_attachment):
        attachment = make_attachment(b"garbage", content_type=None)

        assert detect_mime_type(attachment.path, None) == "image/jpeg"


@pytest.mark.unit
def test_encode_file_data_uri(make_attachment, png_bytes):
    attachment = make_attachment(png_bytes, content_type="image/png")

    data_uri = encode_file_data_uri(attachment)

    prefix, payload = data_uri.split(",", 1)
    assert prefix == "data:image/png;base64"
    assert base64.b64decode(payload) == png_bytes


@pytest.mark.unit
class TestRemoveAttachments:

    def test_removes_files_and_skips_missing(self, make_attachment, tmp_path):
        attachments = [make_attachment(), make_attachment()]
        missing = ImageAttachment(path=str(tmp_path / "never-written"))

        failures = remove_attachments(attachments + [missing])

        assert failures == []
        assert not any(os.path.exists(a.path) for a in attachments)

    def test_failure_is_reported_and_sweep_continues(self, make_attachment):
        stuck, other = make_attachment(), make_attachment()
        real_remove = os.remove

        def flaky_remove(path):
            if path == stuck.path:
                raise PermissionError("read-only")
            real_remove(path)

        with patch("imagegen_backend.utils.os.remove", side_effect=flaky_remove):
            failures = remove_attachments([stuck, other])

        assert len(failures) == 1
        assert isinstance(failures[0], IOCleanupError)
        assert failures[0].path == stuck.path
        assert not os.path.exists(other.path)


@pytest.mark.unit
class TestSaveUpload:

    @pytest.mark.asyncio
    async def test_writes_upload_to_directory(self, tmp_path, png_bytes):
        upload_dir = tmp_path / "uploads"

        attachment = await save_upload(_upload(png_bytes), str(upload_dir))

        assert os.path.dirname(attachment.path) == str(upload_dir)
        assert attachment.content_type == "image/png"
        assert attachment.filename == "photo.png"
        with open(attachment.path, "rb") as f:
            assert f.read() == png_bytes

    @pytest.mark.asyncio
    async def test_partial_file_is_removed_on_failure(self, tmp_path):
        upload_dir = tmp_path / "uploads"
        upload = _upload(b"data")

        async def broken_read(size=-1):
            raise OSError("connection dropped")

        upload.read = broken_read

        with pytest.raises(OSError):
            await save_upload(upload, str(upload_dir))

        assert os.listdir(upload_dir) == []


@pytest.mark.unit
def test_truncate_data_uris_only_touches_data_uris():
    payload = {"prompt": "data: not a uri but short", "input_image": "data:image/png;base64," + "A" * 500}

    shortened = truncate_data_uris(payload)

    assert shortened["prompt"] == payload["prompt"]
    assert shortened["input_image"].endswith("(522 chars)")
    assert payload["input_image"].endswith("A")
