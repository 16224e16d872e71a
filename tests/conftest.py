"""Shared fixtures: in-memory storage backends, settings and image payloads."""

import io
import os

import pytest
from PIL import Image

from media_gateway.core.config import Settings
from media_gateway.core.exceptions import UnparsableStorageUrlError
from media_gateway.models.media import StorageType
from media_gateway.services.storage import StorageConfig, StorageRouter
from media_gateway.services.storage.base import StorageBackendInterface

GCS_BASE_URL = "https://storage.googleapis.com/media-bucket"
SPACES_BASE_URL = "https://my-bucket.sgp1.digitaloceanspaces.com"


class FakeBackend(StorageBackendInterface):
    """In-memory backend that records every call."""

    def __init__(self, storage_type: StorageType, base_url: str, fail_store: bool = False):
        self.storage_type = storage_type
        self.base_url = base_url
        self.fail_store = fail_store
        self.objects: dict[str, bytes] = {}
        self.url_sources: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.signed: list[str] = []

    async def store_from_path(self, local_path, destination, provider_options=None):
        if self.fail_store:
            return None
        with open(local_path, "rb") as f:
            self.objects[destination] = f.read()
        return self.public_url(destination)

    async def store_from_url(self, source_url, destination, provider_options=None):
        if self.fail_store:
            return None
        self.url_sources.append((source_url, destination))
        self.objects[destination] = b""
        return self.public_url(destination)

    async def store_from_stream(self, destination, readable, provider_options=None):
        if self.fail_store:
            return None
        self.objects[destination] = await readable.read()
        return self.public_url(destination)

    async def delete_by_url(self, url):
        self.deleted.append(url)
        try:
            _, key = self.parse_url(url)
        except UnparsableStorageUrlError:
            return False
        return self.objects.pop(key, None) is not None

    async def issue_upload_credential(self, destination, expires_in=600):
        if "bad" in destination:
            raise RuntimeError("signing refused")
        self.signed.append(destination)
        return f"{self.public_url(destination)}?X-Amz-Expires={expires_in}&X-Amz-Signature=deadbeef"

    def public_url(self, key):
        return f"{self.base_url}/{key}"

    def parse_url(self, url):
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            raise UnparsableStorageUrlError(url)
        return "fake", url[len(prefix):]


@pytest.fixture
def google_backend():
    return FakeBackend(StorageType.GOOGLE, GCS_BASE_URL)


@pytest.fixture
def spaces_backend():
    return FakeBackend(StorageType.DIGITAL, SPACES_BASE_URL)


@pytest.fixture
def storage_config():
    return StorageConfig(
        gg_bucket="media-bucket",
        spaces_domain="https://sgp1.digitaloceanspaces.com",
        spaces_region="sgp1",
        spaces_bucket="my-bucket",
        spaces_bucket_domain=SPACES_BASE_URL,
    )


@pytest.fixture
def router(storage_config, google_backend, spaces_backend):
    return StorageRouter(
        storage_config,
        backends={StorageType.GOOGLE: google_backend, StorageType.DIGITAL: spaces_backend},
    )


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def make_settings(scratch_dir):
    """Factory for isolated settings; production by default so nothing delegates."""

    def _make(**overrides) -> Settings:
        values = {"UPLOAD_DIR": str(scratch_dir), "ENVIRONMENT": "production"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


def image_bytes(size=(64, 48), mode="RGB", fmt="PNG") -> bytes:
    """Small solid image encoded in ``fmt``."""
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def noise_image_bytes(side: int) -> bytes:
    """Random-noise PNG; noise does not deflate, so size is about side*side*3 bytes."""
    img = Image.frombytes("RGB", (side, side), os.urandom(side * side * 3))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG", compress_level=1)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    return image_bytes


@pytest.fixture
def make_noise_image():
    return noise_image_bytes
