"""
Media upload port.

The backend never keeps image bytes: uploads are forwarded to the media
service and only the returned URL + metadata is attached to complaints.
"""
import abc
import io
import logging
from dataclasses import dataclass

import cloudinary.exceptions
import cloudinary.uploader
from fastapi import Depends
from fastapi.concurrency import run_in_threadpool

from citycare.core.config import Settings, get_settings
from citycare.core.errors import ServiceUnavailable, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    url: str
    filename: str | None
    provider: str


class MediaUploader(abc.ABC):
    @abc.abstractmethod
    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadedFile:
        ...


class CloudinaryUploader(MediaUploader):
    """Signed image upload through the Cloudinary SDK (run off the event loop)."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def _options(self) -> dict[str, str]:
        s = self._settings
        return {
            "cloud_name": s.cloudinary_cloud_name,
            "api_key": s.cloudinary_api_key,
            "api_secret": s.cloudinary_api_secret,
            "folder": s.cloudinary_folder,
            "resource_type": "image",
            "use_filename": True,
            "unique_filename": True,
        }

    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadedFile:
        stream = io.BytesIO(content)
        stream.name = filename

        try:
            result = await run_in_threadpool(cloudinary.uploader.upload, stream, **self._options())
        except cloudinary.exceptions.Error as exc:
            logger.error("Cloudinary upload of %s failed: %s", filename, exc)
            raise UpstreamError("Upload failed") from exc

        logger.info("Uploaded %s to Cloudinary as %s", filename, result.get("public_id"))
        return UploadedFile(
            url=result["secure_url"],
            filename=result.get("original_filename") or filename,
            provider="cloudinary",
        )


def get_media_uploader(settings: Settings = Depends(get_settings)) -> MediaUploader:
    """FastAPI dependency: raises ServiceUnavailable when Cloudinary is not configured."""
    if not settings.cloudinary_configured:
        raise ServiceUnavailable("Media uploads are not configured on this server")
    return CloudinaryUploader(settings)
