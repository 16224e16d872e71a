"""
Tests for the media API endpoints.

Tests signed URL issuance, token-protected uploads and deletes, request
validation and rate limiting.
"""

import pytest
from fastapi.testclient import TestClient

from main import app
from media_gateway.core.config import settings
from media_gateway.core.rate_limit import limiter
from media_gateway.routes.media import get_upload_service
from media_gateway.services.upload_service import UploadService

TOKEN = "route-secret"


@pytest.fixture
def service(make_settings, router):
    return UploadService(make_settings(), router=router)


@pytest.fixture
def client(service, monkeypatch):
    """Create a test client backed by in-memory storage."""
    monkeypatch.setattr(settings, "CDN_UPLOAD_CREDENTIAL", TOKEN)
    limiter.reset()
    app.dependency_overrides[get_upload_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.reset()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_put_signed_url(client, spaces_backend):
    response = client.post("/media/register-put-signed-url", json={"filename": "Báo cáo Q3.png"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["key"].startswith("event/medias/")
    assert data["key"].endswith(".png")
    assert "?" not in data["public_url"]
    assert data["signed_url"].startswith(data["public_url"] + "?")
    assert spaces_backend.signed == [data["key"]]


@pytest.mark.parametrize("filename", ["../secret.png", "noextension", "a/b.png", ""])
def test_register_put_signed_url_rejects_bad_filename(client, filename):
    response = client.post("/media/register-put-signed-url", json={"filename": filename})

    assert response.status_code == 422


def test_register_put_signed_urls_dedupes(client):
    response = client.post(
        "/media/register-put-signed-urls", json={"filenames": ["a.png", "a.png", "b.png"]}
    )

    assert response.status_code == 200
    assert [item["filename"] for item in response.json()["data"]] == ["a.png", "b.png"]


@pytest.mark.parametrize("filenames", [[], [f"f{i}.png" for i in range(21)]])
def test_register_put_signed_urls_batch_bounds(client, filenames):
    response = client.post("/media/register-put-signed-urls", json={"filenames": filenames})

    assert response.status_code == 422


def test_signed_url_rate_limit(client):
    statuses = [
        client.post("/media/register-put-signed-url", json={"filename": "a.png"}).status_code
        for _ in range(21)
    ]

    assert statuses[:20] == [200] * 20
    assert statuses[20] == 429


def test_rate_limit_response_body(client):
    for _ in range(11):
        response = client.post("/media/register-put-signed-urls", json={"filenames": ["a.png"]})

    assert response.status_code == 429
    assert response.json()["error"] == "Rate limit exceeded"


@pytest.mark.parametrize("params", [{}, {"token": "wrong"}])
def test_upload_from_url_requires_token(client, params):
    response = client.post(
        "/media/upload-file-from-url",
        params=params,
        json={"url": "https://files.example/a.pdf", "folder": "docs", "file_ext": "pdf"},
    )

    assert response.status_code == 403


def test_upload_from_url(client, google_backend):
    response = client.post(
        "/media/upload-file-from-url",
        params={"token": TOKEN},
        json={"url": "https://files.example/a.pdf", "folder": "docs", "file_ext": "pdf"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data"].startswith("https://storage.googleapis.com/media-bucket/docs/")
    assert body["error"] is None
    assert google_backend.url_sources[0][0] == "https://files.example/a.pdf"


def test_upload_from_url_failure_reports_stage(client, google_backend):
    google_backend.fail_store = True

    response = client.post(
        "/media/upload-file-from-url",
        params={"token": TOKEN},
        json={"url": "https://files.example/a.pdf", "folder": "docs", "file_ext": "pdf"},
    )

    body = response.json()
    assert body["data"] is None
    assert body["error"] == {"stage": "store", "kind": "transport"}


@pytest.mark.parametrize("file_ext", ["../x", "", "p/df"])
def test_upload_from_url_rejects_bad_extension(client, google_backend, file_ext):
    response = client.post(
        "/media/upload-file-from-url",
        params={"token": TOKEN},
        json={"url": "https://files.example/a.pdf", "folder": "docs", "file_ext": file_ext},
    )

    assert response.status_code == 422
    assert google_backend.url_sources == []


def test_delete_files_by_url(client, google_backend, spaces_backend):
    google_backend.objects["docs/a.pdf"] = b"1"
    present = google_backend.public_url("docs/a.pdf")
    missing = spaces_backend.public_url("docs/missing.pdf")

    response = client.post(
        "/media/delete-files-by-url",
        params={"token": TOKEN},
        json={"urls": [present, present, missing]},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {present: True, missing: False}


def test_delete_files_by_url_requires_token(client):
    response = client.post("/media/delete-files-by-url", json={"urls": ["https://x/y.png"]})

    assert response.status_code == 403
