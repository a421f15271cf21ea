"""
Citizen-facing complaint endpoints.

/complaints/stats is public; everything else requires an authenticated
caller.  Single-complaint routes are owner-only (admins may also read).
Soft-deleted complaints never appear here.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from citycare.core.config import Settings, get_settings
from citycare.core.rbac import require_role
from citycare.core.security import AuthContext
from citycare.models.complaint import Complaint
from citycare.schemas.common import DeleteResponse
from citycare.schemas.complaint import (
    ComplaintCreate,
    ComplaintPage,
    ComplaintResponse,
    ComplaintStats,
    ComplaintUpdate,
)
from citycare.services import access, assignment, queries
from citycare.services.lifecycle import new_complaint
from citycare.services.store import ComplaintStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/complaints", tags=["complaints"])


def to_page(page: queries.Page) -> ComplaintPage:
    return ComplaintPage(
        items=[ComplaintResponse.model_validate(c) for c in page.items],
        page=page.page,
        page_size=page.page_size,
        total=page.total,
        total_pages=page.total_pages,
    )


def _page_size(limit: int | None, settings: Settings) -> int:
    return min(limit or settings.default_page_size, settings.max_page_size)


@router.get("", response_model=ComplaintPage)
async def list_complaints(
    q: str | None = None,
    status_: str | None = Query(default=None, alias="status"),
    type_: str | None = Query(default=None, alias="type"),
    user_id: str | None = Query(default=None, alias="userId"),
    urgent: bool | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    store: ComplaintStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    _user: AuthContext = Depends(require_role()),
) -> ComplaintPage:
    """Search all live complaints (map / public listing)."""
    filters = queries.ComplaintFilters(
        status=status_, type=type_, owner_id=user_id, urgent=urgent, q=q, deleted=False
    )
    result = await queries.list_complaints(
        store, filters, sort_by, sort_order, page, _page_size(limit, settings)
    )
    return to_page(result)


@router.get("/stats", response_model=ComplaintStats)
async def complaint_stats(
    user_id: str | None = Query(default=None, alias="userId"),
    store: ComplaintStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> ComplaintStats:
    """Public summary counts, optionally for one citizen."""
    criteria = queries.build_criteria(queries.ComplaintFilters(owner_id=user_id, deleted=False))
    data = await queries.summary(store, criteria, settings.tz)
    return ComplaintStats(**data)


@router.get("/my", response_model=ComplaintPage)
async def my_complaints(
    status_: str | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    store: ComplaintStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    user: AuthContext = Depends(require_role()),
) -> ComplaintPage:
    filters = queries.ComplaintFilters(status=status_, owner_id=user.user_id, deleted=False)
    result = await queries.list_complaints(
        store, filters, sort_by, sort_order, page, _page_size(limit, settings)
    )
    return to_page(result)


@router.get("/{complaint_id}", response_model=ComplaintResponse)
async def get_complaint(
    complaint_id: str,
    store: ComplaintStore = Depends(get_store),
    user: AuthContext = Depends(require_role()),
) -> ComplaintResponse:
    complaint = await store.get_by_id(complaint_id)
    access.ensure_can_view(complaint, user)
    return ComplaintResponse.model_validate(complaint)


@router.post("", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    payload: ComplaintCreate,
    store: ComplaintStore = Depends(get_store),
    user: AuthContext = Depends(require_role()),
) -> ComplaintResponse:
    """File a new complaint.  The caller becomes its owner; status starts at pending."""
    complaint: Complaint = new_complaint(payload.model_dump(), owner_id=user.user_id)
    complaint = await store.insert(complaint)

    logger.info("New complaint created: %s by user %s", complaint.registration_number, user.user_id)
    return ComplaintResponse.model_validate(complaint)


@router.put("/{complaint_id}", response_model=ComplaintResponse)
async def update_complaint(
    complaint_id: str,
    payload: ComplaintUpdate,
    store: ComplaintStore = Depends(get_store),
    user: AuthContext = Depends(require_role()),
) -> ComplaintResponse:
    """Owner edits their complaint's details.  Lifecycle fields are admin-only."""
    complaint = await store.get_by_id(complaint_id)
    access.ensure_owner(complaint, user, "update")

    patch = access.sanitize_citizen_patch(
        payload.model_dump(exclude_unset=True, exclude=set(payload.model_extra or {})),
        payload.model_extra or {},
    )
    complaint = await store.update_by_id(complaint.id, patch)
    return ComplaintResponse.model_validate(complaint)


@router.delete("/{complaint_id}", response_model=DeleteResponse)
async def delete_complaint(
    complaint_id: str,
    store: ComplaintStore = Depends(get_store),
    user: AuthContext = Depends(require_role()),
) -> DeleteResponse:
    """Owner withdraws a complaint.  The row is kept (soft delete) for audit."""
    complaint = await store.get_by_id(complaint_id)
    access.ensure_owner(complaint, user, "delete")
    await assignment.soft_delete(store, complaint.id, actor_id=user.user_id)
    return DeleteResponse(message="Complaint deleted successfully")
