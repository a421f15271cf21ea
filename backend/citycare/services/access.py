"""
Ownership rules for the citizen-facing complaint routes.

Admin gating lives in citycare.core.rbac; this module covers what a
non-admin caller may do with a single complaint.
"""
from typing import Any

from citycare.core.errors import Forbidden, NotFound, ValidationError
from citycare.core.security import AuthContext
from citycare.models.complaint import Complaint

# Wire names dropped silently from citizen patches
PROTECTED_FIELDS = frozenset({
    "ownerId", "owner_id", "userId",
    "registrationNumber", "registration_number",
    "createdAt", "created_at", "updatedAt", "updated_at",
    "id", "_id", "version",
})

# Wire names only the admin lifecycle routes may change
ADMIN_FIELDS = frozenset({
    "status",
    "resolutionPhotos", "resolution_photos",
    "resolvedAt", "resolved_at",
    "assignedTo", "assigned_to",
    "adminNotes", "admin_notes",
    "rejectionReason", "rejection_reason",
    "deleted", "deletedAt", "deleted_at", "deletedBy", "deleted_by",
})

REQUIRED_FIELDS = frozenset({"type", "description", "location", "urgent", "files"})


def ensure_can_view(complaint: Complaint, auth: AuthContext) -> None:
    if auth.is_admin:
        return
    if complaint.deleted:
        raise NotFound(f"No complaint found with ID: {complaint.id}")
    if complaint.owner_id != auth.user_id:
        raise Forbidden("You don't have permission to view this complaint")


def ensure_owner(complaint: Complaint, auth: AuthContext, action: str) -> None:
    if complaint.deleted:
        raise NotFound(f"No complaint found with ID: {complaint.id}")
    if complaint.owner_id != auth.user_id:
        raise Forbidden(f"You don't have permission to {action} this complaint")


def sanitize_citizen_patch(patch: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    """
    Return the column patch a citizen is allowed to apply.

    *patch* holds the recognised, validated fields; *extra* the unknown keys
    the client sent.  Protected keys are dropped; lifecycle keys are refused.
    """
    refused = sorted(k for k in extra if k in ADMIN_FIELDS)
    if refused:
        raise Forbidden(
            f"Only administrators can change {', '.join(refused)}; "
            "status changes go through the admin status endpoint"
        )

    nulls = sorted(k for k in REQUIRED_FIELDS if k in patch and patch[k] is None)
    if nulls:
        raise ValidationError("Validation failed", details=[f"{k}: may not be null" for k in nulls])

    return {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}
