"""
Complaint lifecycle: pending → in-progress → closed | rejected.

closed and rejected are terminal; re-applying the current status is allowed
(it may still carry a note) but leaving a terminal status is refused.
Closing needs at least one resolution photo with an absolute http(s) URL,
and resolved_at is stamped only the first time a complaint is closed.

apply_status() validates everything before it touches the complaint, so a
refused transition leaves the row exactly as it was read.
"""
import logging
import secrets
import time
import uuid
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

from citycare.core.errors import EvidenceRequired, InvalidStatus, InvalidTransition, ValidationError
from citycare.models.complaint import (
    STATUS_CLOSED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUSES,
    TERMINAL_STATUSES,
    Complaint,
    utcnow,
)
from citycare.services.store import ComplaintStore

logger = logging.getLogger(__name__)


def generate_registration_number() -> str:
    """REG + epoch milliseconds + three random digits, e.g. REG1760868000123042."""
    return f"REG{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def new_complaint(fields: dict[str, Any], owner_id: str) -> Complaint:
    """A fresh pending complaint owned by *owner_id*."""
    return Complaint(
        **fields,
        registration_number=generate_registration_number(),
        owner_id=owner_id,
        status=STATUS_PENDING,
        resolution_photos=[],
        admin_notes=[],
        deleted=False,
    )


def validate_status(value: Any) -> str:
    if not isinstance(value, str) or value not in STATUSES:
        raise InvalidStatus(f"Status must be one of: {', '.join(STATUSES)}")
    return value


def _is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_resolution_photos(photos: Any) -> list[dict[str, Any]]:
    if not isinstance(photos, list) or not photos:
        raise EvidenceRequired()

    normalized = []
    for photo in photos:
        if not isinstance(photo, dict) or not _is_http_url(photo.get("url")):
            raise EvidenceRequired("Each photo must have a valid URL")
        normalized.append(
            {
                "url": photo["url"].strip(),
                "filename": photo.get("filename"),
                "provider": photo.get("provider") or "cloudinary",
            }
        )
    return normalized


def append_note(complaint: Complaint, note: str, actor_id: str, now: datetime) -> None:
    # Reassign instead of mutating in place so the JSON column is flagged dirty
    entry = {"note": note, "addedBy": actor_id, "addedAt": now.isoformat()}
    complaint.admin_notes = [*(complaint.admin_notes or []), entry]


def check_transition(complaint: Complaint, new_status: str) -> None:
    if complaint.status in TERMINAL_STATUSES and new_status != complaint.status:
        raise InvalidTransition(
            f"Complaint {complaint.registration_number} is {complaint.status}; "
            f"it cannot move to {new_status}"
        )


def apply_status(
    complaint: Complaint,
    new_status: Any,
    actor_id: str,
    *,
    note: str | None = None,
    resolution_photos: Any = None,
    rejection_reason: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Apply a transition in memory.  Returns True when anything changed."""
    status = validate_status(new_status)
    check_transition(complaint, status)
    photos = validate_resolution_photos(resolution_photos) if status == STATUS_CLOSED else None

    now = now or utcnow()
    changed = False

    if photos is not None:
        complaint.resolution_photos = photos
        if complaint.resolved_at is None:
            complaint.resolved_at = now
        changed = True

    if status == STATUS_REJECTED and rejection_reason:
        complaint.rejection_reason = rejection_reason
        changed = True

    if complaint.status != status:
        complaint.status = status
        changed = True

    if note and note.strip():
        append_note(complaint, note.strip(), actor_id, now)
        changed = True

    return changed


class LifecycleEngine:
    def __init__(self, store: ComplaintStore):
        self.store = store

    async def set_status(
        self,
        complaint_id: str | uuid.UUID,
        new_status: Any,
        actor_id: str,
        note: str | None = None,
        resolution_photos: Any = None,
        rejection_reason: str | None = None,
    ) -> Complaint:
        # Validate the request shape before touching the store
        status = validate_status(new_status)
        if status == STATUS_CLOSED:
            validate_resolution_photos(resolution_photos)

        complaint = await self.store.get_by_id(complaint_id)
        previous = complaint.status
        apply_status(
            complaint,
            status,
            actor_id,
            note=note,
            resolution_photos=resolution_photos,
            rejection_reason=rejection_reason,
        )
        complaint = await self.store.save(complaint)

        logger.info(
            "Complaint %s status %s → %s by %s",
            complaint.registration_number, previous, status, actor_id,
        )
        return complaint

    async def add_note(self, complaint_id: str | uuid.UUID, actor_id: str, note: str) -> Complaint:
        if not note or not note.strip():
            raise ValidationError("note is required")
        complaint = await self.store.get_by_id(complaint_id)
        append_note(complaint, note.strip(), actor_id, utcnow())
        return await self.store.save(complaint)
