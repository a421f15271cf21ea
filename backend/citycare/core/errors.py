"""
Domain error taxonomy.

Services raise these; the handlers registered in citycare.main turn them into
a JSON body of the form {"error": <code>, "message": <text>, "details"?: [...]}.
"""
from typing import Any


class CityCareError(Exception):
    status_code = 500
    error = "InternalServerError"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: list[Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CityCareError):
    status_code = 400
    error = "ValidationError"
    default_message = "Validation failed"


class InvalidIdentifier(CityCareError):
    status_code = 400
    error = "InvalidIdentifier"
    default_message = "Invalid complaint ID"


class EvidenceRequired(CityCareError):
    status_code = 400
    error = "EvidenceRequired"
    default_message = (
        "You must provide at least one photo when closing an issue to show the resolved state"
    )


class InvalidStatus(CityCareError):
    status_code = 400
    error = "InvalidStatus"
    default_message = "Invalid complaint status"


class InvalidOperation(CityCareError):
    status_code = 400
    error = "InvalidOperation"
    default_message = "This operation is not allowed"


class Unauthorized(CityCareError):
    status_code = 401
    error = "Unauthorized"
    default_message = "Authentication required"


class Forbidden(CityCareError):
    status_code = 403
    error = "Forbidden"
    default_message = "You don't have permission to perform this action"


class NotFound(CityCareError):
    status_code = 404
    error = "NotFound"
    default_message = "Complaint not found"


class DuplicateError(CityCareError):
    status_code = 409
    error = "DuplicateError"
    default_message = "Duplicate complaint detected"


class InvalidTransition(CityCareError):
    status_code = 409
    error = "InvalidTransition"
    default_message = "This status change is not allowed"


class ConcurrentModification(CityCareError):
    status_code = 409
    error = "ConcurrentModification"
    default_message = "The complaint was modified by another request; reload and retry"


class StorageError(CityCareError):
    status_code = 500
    error = "StorageError"
    default_message = "A storage error occurred"


class UpstreamError(CityCareError):
    status_code = 502
    error = "UpstreamError"
    default_message = "An external service request failed"


class ServiceUnavailable(CityCareError):
    status_code = 503
    error = "ServiceUnavailable"
    default_message = "Service unavailable"
