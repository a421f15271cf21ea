"""
Admin complaint endpoints.

All routes require the admin role claim from the identity directory.
Admin views include soft-deleted complaints unless filtered with deleted=false.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query

from citycare.api.v1.complaints import to_page
from citycare.core.config import Settings, get_settings
from citycare.core.rbac import require_role
from citycare.core.security import AuthContext
from citycare.schemas.common import MessageResponse
from citycare.schemas.complaint import (
    AdminStats,
    AssignRequest,
    BulkUpdateRequest,
    BulkUpdateResponse,
    BulkUpdateResult,
    ComplaintMutationResponse,
    ComplaintPage,
    ComplaintResponse,
    NoteRequest,
    StatusUpdate,
)
from citycare.services import assignment, queries
from citycare.services.lifecycle import LifecycleEngine
from citycare.services.store import ComplaintStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role("admin")


def _mutation(message: str, complaint) -> ComplaintMutationResponse:
    return ComplaintMutationResponse(
        message=message, data=ComplaintResponse.model_validate(complaint)
    )


@router.get("/stats", response_model=AdminStats)
async def admin_stats(
    store: ComplaintStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    _admin: AuthContext = Depends(require_admin),
) -> AdminStats:
    """Dashboard overview, by-type breakdown and recent daily activity."""
    overview = await queries.summary(store, [], settings.tz)
    by_type = overview.pop("by_type")
    activity = await queries.daily_activity(store, settings.recent_activity_days, settings.tz)
    return AdminStats(overview=overview, by_type=by_type, recent_activity=activity)


@router.get("/complaints", response_model=ComplaintPage)
async def admin_list_complaints(
    q: str | None = None,
    status_: str | None = Query(default=None, alias="status"),
    type_: str | None = Query(default=None, alias="type"),
    user_id: str | None = Query(default=None, alias="userId"),
    urgent: bool | None = None,
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    deleted: bool | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    store: ComplaintStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    _admin: AuthContext = Depends(require_admin),
) -> ComplaintPage:
    filters = queries.ComplaintFilters(
        status=status_,
        type=type_,
        owner_id=user_id,
        urgent=urgent,
        assigned_to=assigned_to,
        q=q,
        deleted=deleted,
    )
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    result = await queries.list_complaints(store, filters, sort_by, sort_order, page, page_size)
    return to_page(result)


@router.get("/complaints/{complaint_id}", response_model=ComplaintResponse)
async def admin_get_complaint(
    complaint_id: str,
    store: ComplaintStore = Depends(get_store),
    _admin: AuthContext = Depends(require_admin),
) -> ComplaintResponse:
    return ComplaintResponse.model_validate(await store.get_by_id(complaint_id))


@router.patch("/complaints/{complaint_id}/status", response_model=ComplaintMutationResponse)
async def update_complaint_status(
    complaint_id: str,
    payload: StatusUpdate,
    store: ComplaintStore = Depends(get_store),
    admin: AuthContext = Depends(require_admin),
) -> ComplaintMutationResponse:
    complaint = await LifecycleEngine(store).set_status(
        complaint_id,
        payload.status,
        admin.user_id,
        note=payload.admin_note,
        resolution_photos=payload.resolution_photos,
        rejection_reason=payload.rejection_reason,
    )
    return _mutation("Complaint status updated successfully", complaint)


@router.patch("/complaints/{complaint_id}/assign", response_model=ComplaintMutationResponse)
async def assign_complaint(
    complaint_id: str,
    payload: AssignRequest | None = None,
    store: ComplaintStore = Depends(get_store),
    admin: AuthContext = Depends(require_admin),
) -> ComplaintMutationResponse:
    """Assign to the given admin, or to the caller when assignedTo is omitted."""
    payload = payload or AssignRequest()
    complaint = await assignment.assign(
        store,
        complaint_id,
        actor_id=admin.user_id,
        assignee_id=payload.assigned_to,
        note=payload.admin_note,
    )
    return _mutation("Complaint assigned successfully", complaint)


@router.post("/complaints/{complaint_id}/notes", response_model=ComplaintMutationResponse)
async def add_admin_note(
    complaint_id: str,
    payload: NoteRequest,
    store: ComplaintStore = Depends(get_store),
    admin: AuthContext = Depends(require_admin),
) -> ComplaintMutationResponse:
    complaint = await LifecycleEngine(store).add_note(complaint_id, admin.user_id, payload.note)
    return _mutation("Note added successfully", complaint)


@router.post("/complaints/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update_complaints(
    payload: BulkUpdateRequest,
    store: ComplaintStore = Depends(get_store),
    admin: AuthContext = Depends(require_admin),
) -> BulkUpdateResponse:
    result = await assignment.bulk_set_status(
        store, payload.ids, admin.user_id, new_status=payload.status, note=payload.admin_note
    )
    return BulkUpdateResponse(
        message=f"{result.modified} complaints updated successfully",
        data=BulkUpdateResult(matched=result.matched, modified=result.modified),
    )


@router.delete("/complaints/{complaint_id}", response_model=ComplaintMutationResponse | MessageResponse)
async def admin_delete_complaint(
    complaint_id: str,
    permanent: bool = False,
    store: ComplaintStore = Depends(get_store),
    admin: AuthContext = Depends(require_admin),
):
    """Soft delete by default; ?permanent=true removes the row for good."""
    if permanent:
        await assignment.hard_delete(store, complaint_id)
        return MessageResponse(message="Complaint permanently deleted")

    complaint = await assignment.soft_delete(store, complaint_id, actor_id=admin.user_id)
    return _mutation("Complaint marked as deleted", complaint)
