"""Error taxonomy shared by the complaint operations and the JSON blueprints."""
from __future__ import annotations

from typing import Dict, Iterable, Optional


class ComplaintServiceError(Exception):
    """Base class for failures reported back to the presentation layer."""

    code = "service_error"
    http_status = 500

    def __init__(self, message: str, *, fields: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.fields = list(fields) if fields else []


class ValidationError(ComplaintServiceError):
    """Raised when required submission fields are missing or empty."""

    code = "validation_error"
    http_status = 400


class AuthRequiredError(ComplaintServiceError):
    """Raised when a staff-only mutation is attempted without an acting user."""

    code = "auth_required"
    http_status = 401


class InvalidStatusError(ComplaintServiceError):
    code = "invalid_status"
    http_status = 400


class NotFoundError(ComplaintServiceError):
    code = "not_found"
    http_status = 404


class PersistenceError(ComplaintServiceError):
    """Raised when the datastore rejects or fails a read or write."""

    code = "persistence_error"
    http_status = 500


HTTP_STATUS_BY_CODE: Dict[str, int] = {
    cls.code: cls.http_status
    for cls in (ValidationError, AuthRequiredError, InvalidStatusError, NotFoundError, PersistenceError)
}


def error_result(exc: ComplaintServiceError) -> Dict:
    result = {"error": exc.message, "code": exc.code}
    if exc.fields:
        result["fields"] = exc.fields
    return result


def status_for(result: Dict, default: int = 200) -> int:
    """HTTP status matching a structured operation result."""
    if not result or "error" not in result:
        return default
    return HTTP_STATUS_BY_CODE.get(result.get("code", ""), 500)
