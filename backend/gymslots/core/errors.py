"""
Centralized error handling for booking/API failures.
Typed exceptions raised by services, plus one table mapping them to HTTP so routes stay thin.
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409  # admission rule rejected the booking
STATUS_UNPROCESSABLE = 422
STATUS_SERVICE_UNAVAILABLE = 503  # database or auth provider down


class GymSlotsError(Exception):
    """Base for every failure a service reports to its caller."""

    code = "error"
    default_message = "Request failed."

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class NotFound(GymSlotsError):
    code = "not_found"
    default_message = "Not found."


class SlotNotFound(NotFound):
    code = "slot_not_found"
    default_message = "This time slot is not available for booking. Please contact the admin."


class Forbidden(GymSlotsError):
    code = "forbidden"
    default_message = "Access denied: admin privileges required."


class AuthRequired(GymSlotsError):
    code = "auth_required"
    default_message = "Sign in to continue."


class InvalidRequest(GymSlotsError):
    code = "invalid_request"
    default_message = "Invalid request."


class UpstreamUnavailable(GymSlotsError):
    code = "upstream_unavailable"
    default_message = "The booking service is temporarily unavailable. Please reload and try again."


class AdmissionError(GymSlotsError):
    """A booking attempt rejected by an admission rule. Expected outcome, not a system error."""

    code = "admission_rejected"


class SlotBlocked(AdmissionError):
    code = "slot_blocked"
    default_message = "This slot is currently blocked and cannot be booked."


class SlotFull(AdmissionError):
    code = "slot_full"
    default_message = "This slot is fully booked."


class DuplicateDayBooking(AdmissionError):
    code = "duplicate_day_booking"
    default_message = (
        "You can only book one slot per day. Please cancel your existing booking to book a new one."
    )


class DuplicateSlotBooking(AdmissionError):
    code = "duplicate_slot_booking"
    default_message = "You have already booked this slot."


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code). First match wins, so subclasses go first.
# ---------------------------------------------------------------------------

ERROR_STATUS_RULES: list[tuple[type[GymSlotsError], int]] = [
    (AdmissionError, STATUS_CONFLICT),
    (NotFound, STATUS_NOT_FOUND),
    (Forbidden, STATUS_FORBIDDEN),
    (AuthRequired, STATUS_UNAUTHORIZED),
    (InvalidRequest, STATUS_UNPROCESSABLE),
    (UpstreamUnavailable, STATUS_SERVICE_UNAVAILABLE),
]


def status_for(exc: GymSlotsError) -> int:
    for exc_type, status_code in ERROR_STATUS_RULES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def error_detail(exc: GymSlotsError, **extra: Any) -> dict[str, Any]:
    """JSON body for a failure: stable code, user-facing message, optional context."""
    detail: dict[str, Any] = {"code": exc.code, "message": exc.message}
    if exc.context:
        detail.update(exc.context)
    detail.update(extra)
    return detail


def error_to_http(exc: GymSlotsError, **extra: Any) -> HTTPException:
    """
    Map a service exception into an HTTPException.
    Uses ERROR_STATUS_RULES; unknown subclasses become 500 with the exception message.
    """
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthRequired) else None
    return HTTPException(status_code=status_for(exc), detail=error_detail(exc, **extra), headers=headers)
