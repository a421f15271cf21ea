"""
POST /uploads: forward one image to the media service.

The response's url/filename/provider are what the client then sends in a
complaint's files or resolutionPhotos list.
"""
import logging

from fastapi import APIRouter, Depends, File, UploadFile

from citycare.core.config import Settings, get_settings
from citycare.core.errors import ValidationError
from citycare.core.media import MediaUploader, get_media_uploader
from citycare.core.rbac import require_role
from citycare.core.security import AuthContext
from citycare.schemas.complaint import Attachment

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("", response_model=Attachment)
async def upload_file(
    file: UploadFile | None = File(default=None),
    user: AuthContext = Depends(require_role()),
    uploader: MediaUploader = Depends(get_media_uploader),
    settings: Settings = Depends(get_settings),
) -> Attachment:
    if file is None:
        raise ValidationError("No file provided")

    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError(f"Only image uploads are accepted (got {content_type or 'unknown'})")

    # One byte past the limit is enough to detect an oversized file
    content = await file.read(settings.upload_max_bytes + 1)
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > settings.upload_max_bytes:
        raise ValidationError(f"File exceeds the {settings.upload_max_bytes} byte limit")

    uploaded = await uploader.upload(file.filename or "upload", content, content_type)
    logger.info("User %s uploaded %s (%d bytes)", user.user_id, uploaded.filename, len(content))
    return Attachment(url=uploaded.url, filename=uploaded.filename, provider=uploaded.provider)
