import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from citycare.models.base import Base

COMPLAINT_TYPES = ("potholes", "rubbish-bins", "streetlights", "public-spaces", "other")

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_CLOSED = "closed"
STATUS_REJECTED = "rejected"
STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_CLOSED, STATUS_REJECTED)
TERMINAL_STATUSES = frozenset({STATUS_CLOSED, STATUS_REJECTED})

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Complaint(Base):
    __tablename__ = "complaints"
    __table_args__ = (
        Index("idx_complaints_owner_status", "owner_id", "status"),
        Index("idx_complaints_type_status", "type", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    registration_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    owner_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[dict] = mapped_column(JsonDocument, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(10), nullable=True)
    urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    files: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_PENDING, index=True
    )

    # Admin features
    assigned_to: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_photos: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    admin_notes: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    # UPDATE ... WHERE version = :read_version; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def age_in_days(self) -> int:
        return (utcnow() - self.created_at).days


Index("idx_complaints_created_at", Complaint.created_at.desc())
