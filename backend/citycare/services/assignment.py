"""
Administrative stewardship: assignment, bulk status changes, deletion.
"""
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from citycare.core.errors import EvidenceRequired, InvalidTransition, ValidationError
from citycare.models.complaint import STATUS_CLOSED, STATUS_REJECTED, Complaint, utcnow
from citycare.services.lifecycle import append_note, apply_status, validate_status
from citycare.services.store import ComplaintStore, parse_id

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    matched: int
    modified: int


async def assign(
    store: ComplaintStore,
    complaint_id: str | uuid.UUID,
    actor_id: str,
    assignee_id: str | None = None,
    note: str | None = None,
) -> Complaint:
    """Assign to *assignee_id*, or to the acting admin when omitted."""
    complaint = await store.get_by_id(complaint_id)
    complaint.assigned_to = assignee_id or actor_id
    if note and note.strip():
        append_note(complaint, note.strip(), actor_id, utcnow())
    complaint = await store.save(complaint)

    logger.info(
        "Complaint %s assigned to %s by %s",
        complaint.registration_number, complaint.assigned_to, actor_id,
    )
    return complaint


async def bulk_set_status(
    store: ComplaintStore,
    ids: Iterable[str],
    actor_id: str,
    new_status: Any = None,
    note: str | None = None,
) -> BulkResult:
    """
    Apply a status and/or note to every complaint found.  Unknown ids are
    skipped; complaints whose terminal status forbids the move are matched
    but not modified.
    """
    if new_status is None and not (note and note.strip()):
        raise ValidationError("Provide a status and/or an adminNote to apply")

    if new_status is not None:
        status = validate_status(new_status)
        if status == STATUS_CLOSED:
            raise EvidenceRequired("Closing requires resolution photos; close complaints one at a time")

    unique_ids = list(dict.fromkeys(parse_id(i) for i in ids))
    complaints = await store.get_many(unique_ids)

    now = utcnow()
    modified = []
    for complaint in complaints:
        if new_status is None:
            append_note(complaint, note.strip(), actor_id, now)
            modified.append(complaint)
            continue
        try:
            if apply_status(complaint, new_status, actor_id, note=note, now=now):
                modified.append(complaint)
        except InvalidTransition as exc:
            logger.info("Bulk update skipped %s: %s", complaint.registration_number, exc.message)

    if modified:
        await store.save_all(modified)

    logger.info(
        "Bulk update by %s: %d ids, %d matched, %d modified",
        actor_id, len(unique_ids), len(complaints), len(modified),
    )
    return BulkResult(matched=len(complaints), modified=len(modified))


async def soft_delete(
    store: ComplaintStore, complaint_id: str | uuid.UUID, actor_id: str
) -> Complaint:
    complaint = await store.get_by_id(complaint_id)
    complaint.status = STATUS_REJECTED
    complaint.deleted = True
    complaint.deleted_at = utcnow()
    complaint.deleted_by = actor_id
    complaint = await store.save(complaint)

    logger.info("Complaint %s soft-deleted by %s", complaint.registration_number, actor_id)
    return complaint


async def hard_delete(store: ComplaintStore, complaint_id: str | uuid.UUID) -> None:
    await store.delete_by_id(complaint_id)
    logger.info("Complaint %s permanently deleted", complaint_id)
