import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field, computed_field

from citycare.schemas.common import CamelModel, PageMeta

ComplaintType = Literal["potholes", "rubbish-bins", "streetlights", "public-spaces", "other"]


class Attachment(CamelModel):
    url: str = Field(min_length=1)
    filename: str | None = None
    provider: str = "cloudinary"


class Location(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str | None = None


class AdminNote(CamelModel):
    note: str
    added_by: str
    added_at: datetime


class ComplaintCreate(CamelModel):
    """Citizen submission.  ownerId/status/registrationNumber are ignored if sent."""

    model_config = ConfigDict(extra="ignore")

    type: ComplaintType
    description: str = Field(min_length=20, max_length=1000)
    location: Location
    phone: str | None = Field(default=None, pattern=r"^[0-9]{10}$")
    urgent: bool = False
    files: list[Attachment] = Field(default_factory=list)


class ComplaintUpdate(CamelModel):
    """
    Citizen patch.  Unknown keys are kept so the access layer can strip the
    immutable ones and refuse lifecycle/admin fields.
    """

    model_config = ConfigDict(extra="allow")

    type: ComplaintType | None = None
    description: str | None = Field(default=None, min_length=20, max_length=1000)
    location: Location | None = None
    phone: str | None = Field(default=None, pattern=r"^[0-9]{10}$")
    urgent: bool | None = None
    files: list[Attachment] | None = None


class StatusUpdate(CamelModel):
    # Validated by the lifecycle engine so callers get InvalidStatus / EvidenceRequired
    status: Any = None
    admin_note: str | None = None
    resolution_photos: Any = None
    rejection_reason: str | None = None


class AssignRequest(CamelModel):
    assigned_to: str | None = None
    admin_note: str | None = None


class NoteRequest(CamelModel):
    note: str = Field(min_length=1, max_length=2000)


class BulkUpdateRequest(CamelModel):
    ids: list[str] = Field(min_length=1)
    status: Any = None
    admin_note: str | None = None


class BulkUpdateResult(CamelModel):
    matched: int
    modified: int


class BulkUpdateResponse(CamelModel):
    message: str
    data: BulkUpdateResult


class ComplaintResponse(CamelModel):
    id: uuid.UUID
    registration_number: str
    owner_id: str
    type: str
    description: str
    location: Location
    phone: str | None
    urgent: bool
    files: list[Attachment]
    status: str
    assigned_to: str | None
    resolution_photos: list[Attachment]
    resolved_at: datetime | None
    rejection_reason: str | None
    admin_notes: list[AdminNote]
    deleted: bool
    deleted_at: datetime | None
    deleted_by: str | None
    version: int
    created_at: datetime
    updated_at: datetime
    age_in_days: int


class ComplaintMutationResponse(CamelModel):
    message: str
    data: ComplaintResponse


class ComplaintPage(PageMeta):
    items: list[ComplaintResponse]


class ComplaintStats(CamelModel):
    total: int
    pending: int
    in_progress: int
    closed: int
    rejected: int
    urgent: int
    today: int
    by_type: dict[str, int]

    @computed_field
    @property
    def registered(self) -> int:
        return self.total


class ActivityPoint(CamelModel):
    date: str
    count: int


class AdminOverview(CamelModel):
    total: int
    pending: int
    in_progress: int
    closed: int
    rejected: int
    urgent: int
    today: int


class AdminStats(CamelModel):
    overview: AdminOverview
    by_type: dict[str, int]
    recent_activity: list[ActivityPoint]
