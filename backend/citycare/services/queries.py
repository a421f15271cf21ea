"""
Filtered / paginated complaint listings and summary statistics.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import ColumnElement, or_

from citycare.core.errors import ValidationError
from citycare.models.complaint import (
    COMPLAINT_TYPES,
    STATUS_CLOSED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_REJECTED,
    Complaint,
    utcnow,
)
from citycare.services.lifecycle import validate_status
from citycare.services.store import ComplaintStore

SORT_FIELDS = {
    "createdAt": Complaint.created_at,
    "updatedAt": Complaint.updated_at,
    "resolvedAt": Complaint.resolved_at,
    "status": Complaint.status,
    "type": Complaint.type,
    "urgent": Complaint.urgent,
    "registrationNumber": Complaint.registration_number,
}


@dataclass
class ComplaintFilters:
    status: str | None = None
    type: str | None = None
    owner_id: str | None = None
    urgent: bool | None = None
    assigned_to: str | None = None
    q: str | None = None
    deleted: bool | None = None


@dataclass
class Page:
    items: list[Complaint]
    page: int
    page_size: int
    total: int
    total_pages: int = field(init=False)

    def __post_init__(self):
        self.total_pages = math.ceil(self.total / self.page_size)


def build_criteria(filters: ComplaintFilters) -> list[ColumnElement[bool]]:
    criteria: list[ColumnElement[bool]] = []

    if filters.q and filters.q.strip():
        q = filters.q.strip()
        criteria.append(
            or_(
                Complaint.registration_number.icontains(q, autoescape=True),
                Complaint.description.icontains(q, autoescape=True),
            )
        )
    if filters.status:
        criteria.append(Complaint.status == validate_status(filters.status))
    if filters.type:
        if filters.type not in COMPLAINT_TYPES:
            raise ValidationError(f"Type must be one of: {', '.join(COMPLAINT_TYPES)}")
        criteria.append(Complaint.type == filters.type)
    if filters.owner_id:
        criteria.append(Complaint.owner_id == filters.owner_id)
    if filters.urgent is not None:
        criteria.append(Complaint.urgent.is_(filters.urgent))
    if filters.assigned_to:
        criteria.append(Complaint.assigned_to == filters.assigned_to)
    if filters.deleted is not None:
        criteria.append(Complaint.deleted.is_(filters.deleted))

    return criteria


def build_order(sort_by: str, sort_order: str) -> list[Any]:
    column = SORT_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be 'asc' or 'desc'")

    if sort_order == "asc":
        return [column.asc(), Complaint.id.asc()]
    return [column.desc(), Complaint.id.desc()]


async def list_complaints(
    store: ComplaintStore,
    filters: ComplaintFilters,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 50,
) -> Page:
    if page < 1 or page_size < 1:
        raise ValidationError("page and limit must be positive integers")

    criteria = build_criteria(filters)
    order = build_order(sort_by, sort_order)
    items, total = await store.find(criteria, order, (page - 1) * page_size, page_size)
    return Page(items=items, page=page, page_size=page_size, total=total)


def local_midnight_utc(now: datetime, tz: ZoneInfo) -> datetime:
    """Start of *now*'s calendar day in *tz*, as naive UTC."""
    local_day = now.replace(tzinfo=timezone.utc).astimezone(tz).date()
    midnight = datetime.combine(local_day, time.min, tzinfo=tz)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


async def summary(
    store: ComplaintStore,
    criteria: list[ColumnElement[bool]],
    tz: ZoneInfo,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Counts by status, urgency, today, and a complete by-type breakdown."""
    now = now or utcnow()

    by_status = await store.count_by_group(criteria, Complaint.status)
    by_type = await store.count_by_group(criteria, Complaint.type)
    urgent = await store.count([*criteria, Complaint.urgent.is_(True)])
    today = await store.count([*criteria, Complaint.created_at >= local_midnight_utc(now, tz)])

    return {
        "total": sum(by_status.values()),
        "pending": by_status.get(STATUS_PENDING, 0),
        "in_progress": by_status.get(STATUS_IN_PROGRESS, 0),
        "closed": by_status.get(STATUS_CLOSED, 0),
        "rejected": by_status.get(STATUS_REJECTED, 0),
        "urgent": urgent,
        "today": today,
        "by_type": {t: by_type.get(t, 0) for t in COMPLAINT_TYPES},
    }


async def daily_activity(
    store: ComplaintStore,
    window_days: int,
    tz: ZoneInfo,
    now: datetime | None = None,
    criteria: list[ColumnElement[bool]] | None = None,
) -> list[dict[str, Any]]:
    """
    [{date, count}] for days with at least one creation, oldest first.  The
    window is *window_days* whole local days ending today.
    """
    now = now or utcnow()
    since = local_midnight_utc(now, tz) - timedelta(days=window_days - 1)
    rows = await store.count_by_day(criteria or [], since, tz)
    return [{"date": day, "count": count} for day, count in rows]
