"""
Tests for the upload proxy.  The media uploader is replaced by FakeUploader
from conftest.py, so no request leaves the process.
"""
import cloudinary.exceptions
import cloudinary.uploader
import pytest

from citycare.core.config import Settings, get_settings
from citycare.core.errors import ServiceUnavailable, UpstreamError
from citycare.core.media import CloudinaryUploader, MediaUploader, get_media_uploader

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64


@pytest.mark.asyncio
async def test_upload_image(client, uploader):
    resp = await client.post(
        "/api/v1/uploads", files={"file": ("pothole.jpg", JPEG, "image/jpeg")}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["url"].endswith("/pothole.jpg")
    assert data["filename"] == "pothole.jpg"
    assert data["provider"] == "cloudinary"
    assert uploader.calls == [("pothole.jpg", len(JPEG), "image/jpeg")]


@pytest.mark.asyncio
async def test_upload_non_image_is_400(client, uploader):
    resp = await client.post(
        "/api/v1/uploads", files={"file": ("notes.txt", b"hello", "text/plain")}
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"
    assert uploader.calls == []


@pytest.mark.asyncio
async def test_upload_without_file_is_400(client):
    resp = await client.post("/api/v1/uploads", data={"caption": "no file here"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "No file provided"


@pytest.mark.asyncio
async def test_upload_empty_file_is_400(client):
    resp = await client.post("/api/v1/uploads", files={"file": ("empty.png", b"", "image/png")})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_too_large_is_400(client, uploader, monkeypatch):
    monkeypatch.setattr(get_settings(), "upload_max_bytes", 16)
    resp = await client.post(
        "/api/v1/uploads", files={"file": ("big.jpg", JPEG, "image/jpeg")}
    )
    assert resp.status_code == 400
    assert "16 byte limit" in resp.json()["message"]
    assert uploader.calls == []


@pytest.mark.asyncio
async def test_upload_at_exact_limit_is_accepted(client, uploader, monkeypatch):
    monkeypatch.setattr(get_settings(), "upload_max_bytes", len(JPEG))
    resp = await client.post(
        "/api/v1/uploads", files={"file": ("edge.jpg", JPEG, "image/jpeg")}
    )
    assert resp.status_code == 200
    assert uploader.calls == [("edge.jpg", len(JPEG), "image/jpeg")]


@pytest.mark.asyncio
async def test_upload_requires_authentication(client):
    resp = await client.post(
        "/api/v1/uploads",
        files={"file": ("pothole.jpg", JPEG, "image/jpeg")},
        headers={"X-Dev-User-ID": ""},
    )
    assert resp.status_code == 401



class FailingUploader(MediaUploader):
    async def upload(self, filename, content, content_type):
        raise UpstreamError("Upload failed")


@pytest.mark.asyncio
async def test_media_service_failure_is_502(client):
    from citycare.main import app

    app.dependency_overrides[get_media_uploader] = lambda: FailingUploader()
    resp = await client.post(
        "/api/v1/uploads", files={"file": ("pothole.jpg", JPEG, "image/jpeg")}
    )
    assert resp.status_code == 502
    assert resp.json() == {"error": "UpstreamError", "message": "Upload failed"}


# ---------------------------------------------------------------------------
# CloudinaryUploader: the SDK call is replaced, the adapter logic is real
# ---------------------------------------------------------------------------

CLOUDINARY_SETTINGS = Settings(
    cloudinary_cloud_name="citycare-demo",
    cloudinary_api_key="1234",
    cloudinary_api_secret="s3cret",
    cloudinary_folder="complaints",
)


@pytest.mark.asyncio
async def test_cloudinary_uploader_passes_credentials_and_folder(monkeypatch):
    seen = {}

    def fake_upload(file, **options):
        seen["name"] = file.name
        seen["bytes"] = file.read()
        seen["options"] = options
        return {
            "public_id": "complaints/pothole_ab12",
            "secure_url": "https://res.cloudinary.com/citycare-demo/image/upload/complaints/pothole_ab12.jpg",
            "original_filename": "pothole",
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    uploaded = await CloudinaryUploader(CLOUDINARY_SETTINGS).upload("pothole.jpg", JPEG, "image/jpeg")

    assert uploaded.url.startswith("https://res.cloudinary.com/citycare-demo/")
    assert uploaded.filename == "pothole"
    assert uploaded.provider == "cloudinary"
    assert seen["name"] == "pothole.jpg"
    assert seen["bytes"] == JPEG
    assert seen["options"]["cloud_name"] == "citycare-demo"
    assert seen["options"]["api_key"] == "1234"
    assert seen["options"]["api_secret"] == "s3cret"
    assert seen["options"]["folder"] == "complaints"
    assert seen["options"]["resource_type"] == "image"


@pytest.mark.asyncio
async def test_cloudinary_error_becomes_upstream_error(monkeypatch):
    def fake_upload(file, **options):
        raise cloudinary.exceptions.Error("Invalid Signature")

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    with pytest.raises(UpstreamError) as exc_info:
        await CloudinaryUploader(CLOUDINARY_SETTINGS).upload("pothole.jpg", JPEG, "image/jpeg")
    assert exc_info.value.status_code == 502


def test_unconfigured_cloudinary_is_503():
    with pytest.raises(ServiceUnavailable):
        get_media_uploader(Settings(cloudinary_cloud_name=""))
