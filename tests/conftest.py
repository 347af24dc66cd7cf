"""
Shared fixtures for the generation backend tests
"""

import io
import os

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imagegen_backend.config import Settings
from imagegen_backend.main import create_app
from imagegen_backend.utils import ImageAttachment


class FakeProviderClient:
    """Stands in for the hosted provider: records calls, returns or raises on demand."""

    def __init__(self, output=None, error=None, upload_dir=None):
        self.output = ["https://example.com/out-0.png"] if output is None else output
        self.error = error
        self.upload_dir = upload_dir
        self.calls = []
        self.files_during_call = []

    async def run(self, model_id, input):
        self.calls.append((model_id, input))
        if self.upload_dir is not None:
            self.files_during_call.append(sorted(os.listdir(self.upload_dir)))
        if self.error is not None:
            raise self.error
        return self.output

    @property
    def last_input(self):
        return self.calls[-1][1]

    @property
    def last_model_id(self):
        return self.calls[-1][0]


def make_png(color=(255, 0, 0), size=(4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(upload_dir):
    return Settings(api_token="test-token", upload_dir=str(upload_dir))


@pytest.fixture
def fake_provider(upload_dir):
    return FakeProviderClient(upload_dir=str(upload_dir))


@pytest.fixture
def client(settings, fake_provider):
    with TestClient(create_app(settings=settings, client=fake_provider)) as test_client:
        yield test_client


@pytest.fixture
def make_attachment(tmp_path):
    """Write bytes to a file and wrap them as an ImageAttachment."""
    counter = {"n": 0}

    def _make(data: bytes = None, content_type: str = "image/png") -> ImageAttachment:
        counter["n"] += 1
        path = tmp_path / f"attachment-{counter['n']}"
        path.write_bytes(make_png() if data is None else data)
        return ImageAttachment(path=str(path), content_type=content_type, filename=path.name)

    return _make
